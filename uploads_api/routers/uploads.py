# uploads_api/routers/uploads.py
"""
Upload endpoints.

POST /uploads(.json)                 - Create an upload (file or remote URL)
POST /uploads/lookup-urls            - Resolve upload:// short URLs
POST /uploads/lookup-metadata        - Filename, dimensions and size for an upload URL
POST /uploads/generate-presigned-put  - Presign a direct-to-S3 upload
GET  /uploads/short-url/{base62}     - Serve by short code
GET  /secure-uploads/{path}          - Serve a secure upload (remote stores)
GET  /secure-media-uploads/{path}    - Deprecated alias of /secure-uploads
GET  /uploads/{site}/{path}          - Serve from the store path
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse, Response

from uploads_api.access import Actor
from uploads_api.auth import get_current_actor, is_api_request, require_actor
from uploads_api.dependencies import get_retrieval_gate, get_upload_repository, get_upload_service
from uploads_api.errors import InvalidParameters, NotFound, StoreError
from uploads_api.models import Upload
from uploads_api.repositories.upload_repository import UploadRepository
from uploads_api.schemas.uploads import (
    LookupMetadataRequest,
    LookupUrlItem,
    LookupUrlsRequest,
    PresignedPutRequest,
    PresignedPutResponse,
    UploadErrorResponse,
    UploadFailedResponse,
    UploadMetadataResponse,
    UploadResponse,
)
from uploads_api.services.retrieval_gate import Decision, Redirect, RetrievalGate
from uploads_api.services.upload_service import UploadPayload, UploadService, normalize_upload_type
from uploads_api.services.upload_validator import ValidationResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])

PRESIGN_FAILED_MESSAGE = "Sorry, the upload could not be prepared. Please try again."


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _is_xhr(request: Request) -> bool:
    return request.headers.get("X-Requested-With", "").lower() == "xmlhttprequest"


def _to_int(value: str | None) -> int:
    if value is None:
        return 0
    value = value.strip()
    if value.lstrip("-").isdigit():
        return int(value)
    return 0


def serialize_upload(upload: Upload, gate: RetrievalGate) -> UploadResponse:
    return UploadResponse(
        id=upload.id,
        sha1=upload.sha1,
        url=gate.public_url(upload),
        original_filename=upload.original_filename,
        filesize=upload.filesize,
        human_filesize=upload.human_filesize,
        width=upload.width,
        height=upload.height,
        extension=upload.extension,
        short_url=upload.short_url,
        short_path=upload.short_path,
        retain_hours=upload.retain_hours,
    )


def _failed(message: str | None = None) -> JSONResponse:
    body = UploadFailedResponse(message=message).model_dump(exclude_none=True)
    return JSONResponse(body, status_code=422)


def _respond(decision: Decision) -> Response:
    if isinstance(decision, Redirect):
        response = RedirectResponse(decision.url, status_code=302)
        if decision.cache_seconds is not None:
            response.headers["Cache-Control"] = f"max-age={decision.cache_seconds}, private"
        return response

    return FileResponse(
        decision.path,
        media_type=decision.content_type,
        filename=decision.filename,
        content_disposition_type=decision.disposition,
    )


# -----------------------------------------------------------------------------
# Create
# -----------------------------------------------------------------------------


@router.post("/uploads.json", response_model=UploadResponse)
@router.post("/uploads", response_model=UploadResponse)
def create_upload(
    type_: str | None = Form(None, alias="type"),
    upload_type: str | None = Form(None),
    url: str | None = Form(None),
    file: UploadFile | None = File(None),
    files: list[UploadFile] | None = File(None),
    pasted: str | None = Form(None),
    for_private_message: str | None = Form(None),
    for_site_setting: str | None = Form(None),
    retain_hours: str | None = Form(None),
    actor: Actor = Depends(require_actor),
    is_api: bool = Depends(is_api_request),
    service: UploadService = Depends(get_upload_service),
    gate: RetrievalGate = Depends(get_retrieval_gate),
) -> Any:
    """
    Create an upload from a multipart file or, for API clients, a remote URL.

    Returns 200 with the upload, or 422 with {"errors": [...]} / {"failed": "FAILED"}.
    """
    kind = normalize_upload_type(type_, upload_type)

    if not service.can_upload_type(actor, kind):
        return _failed()

    upload_file = file or (files[0] if files else None)
    payload = None
    if upload_file is not None:
        payload = UploadPayload(filename=upload_file.filename or "", stream=upload_file.file)

    try:
        result = service.create_upload(
            actor,
            payload,
            url,
            kind,
            for_private_message=for_private_message == "true",
            for_site_setting=for_site_setting == "true",
            pasted=pasted == "true",
            is_api=is_api,
            retain_hours=_to_int(retain_hours),
        )
    except StoreError:
        logger.exception("[UPLOADS] Store commit failed", extra={"event": "upload_store_failed", "user_id": actor.id})
        return _failed("Sorry, there was an error uploading that file. Please try again.")
    except Exception as e:
        logger.exception("[UPLOADS] Upload failed", extra={"event": "upload_failed", "user_id": actor.id})
        return _failed(str(e).split("\n", 1)[0])

    if isinstance(result, ValidationResult):
        body = UploadErrorResponse(errors=result.messages).model_dump()
        return JSONResponse(body, status_code=422)

    return serialize_upload(result, gate)


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------


@router.post("/uploads/lookup-urls", response_model=list[LookupUrlItem])
def lookup_urls(
    payload: LookupUrlsRequest,
    _: Actor = Depends(require_actor),
    gate: RetrievalGate = Depends(get_retrieval_gate),
) -> list[LookupUrlItem]:
    return [
        LookupUrlItem(short_url=item.short_url, url=item.url, short_path=item.short_path)
        for item in gate.lookup_urls(payload.short_urls)
    ]


@router.post("/uploads/lookup-metadata", response_model=UploadMetadataResponse)
def lookup_metadata(
    payload: LookupMetadataRequest,
    _: Actor = Depends(require_actor),
    repository: UploadRepository = Depends(get_upload_repository),
) -> UploadMetadataResponse:
    if not payload.url:
        raise InvalidParameters("url is required")

    upload = repository.find_by_url(payload.url)
    if upload is None:
        raise NotFound(payload.url)

    return UploadMetadataResponse(
        original_filename=upload.original_filename,
        width=upload.width,
        height=upload.height,
        human_filesize=upload.human_filesize,
    )


# -----------------------------------------------------------------------------
# Direct uploads
# -----------------------------------------------------------------------------


@router.post("/uploads/generate-presigned-put", response_model=PresignedPutResponse)
def generate_presigned_put(
    payload: PresignedPutRequest,
    actor: Actor = Depends(require_actor),
    service: UploadService = Depends(get_upload_service),
) -> Any:
    """
    Presign a PUT so the client can send its bytes straight to the bucket.

    Remote stores only (404 otherwise). Size and extension failures, and
    store errors while presigning, come back as 422 {"errors": [...]}.
    """
    kind = normalize_upload_type(payload.type, payload.upload_type)

    try:
        result = service.generate_presigned_put(actor, payload.file_name, payload.file_size, kind)
    except StoreError as e:
        logger.warning(
            f"[UPLOADS] Presigning direct upload failed: {e}",
            extra={"event": "presigned_put_failed", "user_id": actor.id},
        )
        body = UploadErrorResponse(errors=[PRESIGN_FAILED_MESSAGE]).model_dump()
        return JSONResponse(body, status_code=422)

    if isinstance(result, ValidationResult):
        body = UploadErrorResponse(errors=result.messages).model_dump()
        return JSONResponse(body, status_code=422)

    return PresignedPutResponse(url=result.url, key=result.key)


# -----------------------------------------------------------------------------
# Retrieval
# -----------------------------------------------------------------------------


@router.get("/uploads/short-url/{base62}")
def show_short(
    base62: str,
    request: Request,
    dl: str | None = Query(None),
    inline: str | None = Query(None),
    actor: Actor | None = Depends(get_current_actor),
    gate: RetrievalGate = Depends(get_retrieval_gate),
) -> Response:
    decision = gate.show_short(
        actor,
        base62,
        xhr=_is_xhr(request),
        force_download=dl == "1",
        inline=bool(inline),
    )
    return _respond(decision)


@router.get("/secure-uploads/{path:path}")
def show_secure(
    path: str,
    request: Request,
    dl: str | None = Query(None),
    actor: Actor | None = Depends(get_current_actor),
    gate: RetrievalGate = Depends(get_retrieval_gate),
) -> Response:
    decision = gate.show_secure(actor, path, xhr=_is_xhr(request), force_download=dl == "1")
    return _respond(decision)


@router.get("/secure-media-uploads/{path:path}", deprecated=True)
def show_secure_deprecated(
    path: str,
    request: Request,
    dl: str | None = Query(None),
    actor: Actor | None = Depends(get_current_actor),
    gate: RetrievalGate = Depends(get_retrieval_gate),
) -> Response:
    """Old posts still link here until they are rebaked."""
    return show_secure(path, request, dl, actor, gate)


@router.get("/uploads/{site}/{path:path}")
def show(
    site: str,
    path: str,
    request: Request,
    dl: str | None = Query(None),
    inline: str | None = Query(None),
    actor: Actor | None = Depends(get_current_actor),
    gate: RetrievalGate = Depends(get_retrieval_gate),
) -> Response:
    decision = gate.show(
        actor,
        site,
        path,
        request.url.path,
        xhr=_is_xhr(request),
        force_download=dl == "1",
        inline=bool(inline),
    )
    return _respond(decision)
