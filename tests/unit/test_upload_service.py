"""
Unit tests for upload ingestion.

Covers:
- Direct uploads into the local store
- Content dedup (one record and one blob per SHA-1)
- Remote URL uploads for API callers
- Validation failures leave no record and no blob
- Store failures propagate without a record
- Admin-only retention hints and the avatar policy
"""

import io
from unittest.mock import MagicMock

import pytest

from uploads_api.access import Actor
from uploads_api.errors import InvalidParameters, NotFound, StoreError
from uploads_api.models import Upload
from uploads_api.services.remote_fetcher import RemoteFetcher, RemoteFetchError
from uploads_api.services.upload_service import UploadPayload, UploadService, normalize_upload_type
from uploads_api.services.upload_validator import ValidationCode, ValidationResult
from uploads_api.storage.base import StorageProvider
from uploads_api.storage.s3_provider import S3StorageProvider

MEMBER = Actor(id=7, username="member", trust_level=1)
ADMIN = Actor(id=1, username="admin", admin=True, trust_level=4)


@pytest.fixture
def fetcher():
    return MagicMock(spec=RemoteFetcher)


def _service(settings, store, repository, fetcher=None):
    return UploadService(settings, store, repository, fetcher=fetcher or MagicMock(spec=RemoteFetcher))


def _payload(name: str, data: bytes) -> UploadPayload:
    return UploadPayload(filename=name, stream=io.BytesIO(data))


def _stored_files(local_store):
    return [p for p in local_store.base_path.rglob("*") if p.is_file()]


# ---------------------------------------------------------------------------
# Direct uploads
# ---------------------------------------------------------------------------


class TestDirectUpload:
    def test_image_upload(self, settings, local_store, repository, png_bytes):
        service = _service(settings, local_store, repository)

        upload = service.create_upload(MEMBER, _payload("cat.png", png_bytes), None, "composer")

        assert isinstance(upload, Upload)
        assert upload.user_id == MEMBER.id
        assert upload.filesize == len(png_bytes)
        assert (upload.width, upload.height) == (3, 2)
        assert upload.extension == "png"
        assert upload.upload_type == "composer"
        assert upload.url == f"/uploads/default/original/1X/{upload.sha1}.png"
        assert upload.short_url.startswith("upload://")
        assert local_store.has_been_stored(upload.url)

    def test_attachment_has_no_dimensions(self, settings, local_store, repository):
        service = _service(settings, local_store, repository)

        upload = service.create_upload(MEMBER, _payload("notes.txt", b"some notes"), None, "composer")

        assert upload.width is None
        assert upload.height is None
        assert upload.human_filesize == "10 Bytes"

    def test_unreadable_image_still_uploads(self, settings, local_store, repository):
        service = _service(settings, local_store, repository)

        upload = service.create_upload(MEMBER, _payload("broken.png", b"not really a png"), None, "composer")

        assert isinstance(upload, Upload)
        assert upload.width is None

    def test_secure_only_for_private_messages_with_secure_uploads(self, make_settings, repository, png_bytes):
        settings = make_settings(SECURE_UPLOADS=True, STORAGE_PROVIDER="s3", S3_BUCKET="bucket")
        client = MagicMock()
        service = _service(settings, S3StorageProvider(settings, client=client), repository)

        upload = service.create_upload(
            MEMBER, _payload("cat.png", png_bytes), None, "composer", for_private_message=True
        )

        assert upload.secure is True
        assert client.put_object.call_args.kwargs["ACL"] == "private"

    def test_internal_store_never_marks_secure(self, make_settings, local_store, repository, png_bytes):
        settings = make_settings(SECURE_UPLOADS=True, STORAGE_PROVIDER="s3", S3_BUCKET="bucket")
        service = _service(settings, local_store, repository)

        upload = service.create_upload(
            MEMBER, _payload("cat.png", png_bytes), None, "composer", for_private_message=True
        )

        assert upload.secure is False
        assert upload.url.startswith("/uploads/default/")

    def test_private_message_without_secure_uploads_is_public(
        self, settings, local_store, repository, png_bytes
    ):
        service = _service(settings, local_store, repository)
        upload = service.create_upload(
            MEMBER, _payload("cat.png", png_bytes), None, "composer", for_private_message=True
        )
        assert upload.secure is False


class TestDedup:
    def test_same_bytes_same_record_and_blob(self, settings, local_store, repository, db_session, png_bytes):
        service = _service(settings, local_store, repository)

        first = service.create_upload(MEMBER, _payload("cat.png", png_bytes), None, "composer")
        second = service.create_upload(ADMIN, _payload("copy.png", png_bytes), None, "composer")

        assert second.id == first.id
        assert second.original_filename == "cat.png"
        assert db_session.query(Upload).count() == 1
        assert len(_stored_files(local_store)) == 1

    def test_missing_blob_is_restored(self, settings, local_store, repository, png_bytes):
        service = _service(settings, local_store, repository)
        first = service.create_upload(MEMBER, _payload("cat.png", png_bytes), None, "composer")
        local_store.path_for(first).unlink()

        again = service.create_upload(MEMBER, _payload("cat.png", png_bytes), None, "composer")

        assert again.id == first.id
        assert local_store.has_been_stored(again.url)


# ---------------------------------------------------------------------------
# Remote URL uploads
# ---------------------------------------------------------------------------


class TestRemoteUpload:
    def test_api_caller_url_is_fetched(self, settings, local_store, repository, fetcher):
        def download(url, destination, max_bytes=None):
            destination.write_bytes(b"remote document")
            return 15

        fetcher.download.side_effect = download
        service = _service(settings, local_store, repository, fetcher)

        upload = service.create_upload(
            ADMIN, None, "https://files.example.com/docs/report.txt?v=2", "composer", is_api=True
        )

        assert upload.original_filename == "report.txt"
        assert upload.origin == "https://files.example.com/docs/report.txt?v=2"
        assert upload.filesize == 15
        fetcher.download.assert_called_once()
        assert fetcher.download.call_args.args[2] == settings.max_remote_fetch_bytes

    def test_url_ignored_for_non_api_callers(self, settings, local_store, repository, fetcher):
        service = _service(settings, local_store, repository, fetcher)

        result = service.create_upload(MEMBER, None, "https://files.example.com/a.png", "composer")

        assert isinstance(result, ValidationResult)
        assert result.codes == [ValidationCode.FILE_MISSING]
        fetcher.download.assert_not_called()

    def test_fetch_failure_is_file_missing_and_cleans_up(self, settings, local_store, repository, fetcher):
        staged_paths = []

        def download(url, destination, max_bytes=None):
            staged_paths.append(destination)
            destination.write_bytes(b"partial")
            raise RemoteFetchError("connection reset")

        fetcher.download.side_effect = download
        service = _service(settings, local_store, repository, fetcher)

        result = service.create_upload(ADMIN, None, "https://files.example.com/a.png", "composer", is_api=True)

        assert result.codes == [ValidationCode.FILE_MISSING]
        assert staged_paths and not staged_paths[0].exists()
        assert _stored_files(local_store) == []


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_nothing_to_upload(self, settings, local_store, repository):
        result = _service(settings, local_store, repository).create_upload(MEMBER, None, None, "composer")
        assert result.codes == [ValidationCode.FILE_MISSING]

    def test_zero_bytes(self, settings, local_store, repository, db_session):
        result = _service(settings, local_store, repository).create_upload(
            MEMBER, _payload("empty.txt", b""), None, "composer"
        )

        assert result.codes == [ValidationCode.SIZE_ZERO]
        assert db_session.query(Upload).count() == 0

    def test_too_large_leaves_nothing_behind(self, make_settings, local_store, repository, db_session):
        service = _service(make_settings(MAX_ATTACHMENT_SIZE_KB=1), local_store, repository)

        result = service.create_upload(MEMBER, _payload("big.txt", b"x" * 2048), None, "composer")

        assert result.codes == [ValidationCode.TOO_LARGE]
        assert db_session.query(Upload).count() == 0
        assert _stored_files(local_store) == []

    def test_unauthorized_extension(self, make_settings, local_store, repository, db_session):
        service = _service(make_settings(AUTHORIZED_EXTENSIONS="png|jpg"), local_store, repository)

        result = service.create_upload(MEMBER, _payload("tool.exe", b"MZ"), None, "composer")

        assert result.codes == [ValidationCode.EXTENSION_NOT_AUTHORIZED]
        assert db_session.query(Upload).count() == 0

    def test_store_failure_creates_no_record(self, settings, repository, db_session, png_bytes):
        store = MagicMock(spec=StorageProvider)
        store.get_path_for_upload.return_value = "original/1X/x.png"
        store.store.side_effect = StoreError("bucket unavailable")
        service = _service(settings, store, repository)

        with pytest.raises(StoreError):
            service.create_upload(MEMBER, _payload("cat.png", png_bytes), None, "composer")
        assert db_session.query(Upload).count() == 0


# ---------------------------------------------------------------------------
# Presigned direct-to-store uploads
# ---------------------------------------------------------------------------


class TestGeneratePresignedPut:
    @pytest.fixture
    def s3_store(self, make_settings):
        settings = make_settings(STORAGE_PROVIDER="s3", S3_BUCKET="bucket", AUTHORIZED_EXTENSIONS="png|pdf")
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://signed.example.com/put"
        return settings, S3StorageProvider(settings, client=client)

    def test_presigns_valid_file(self, s3_store, repository, db_session):
        settings, store = s3_store

        presigned = _service(settings, store, repository).generate_presigned_put(MEMBER, "doc.pdf", 100, "composer")

        assert presigned.url == "https://signed.example.com/put"
        assert presigned.key.endswith("/doc.pdf")
        assert db_session.query(Upload).count() == 0

    def test_unauthorized_extension(self, s3_store, repository):
        settings, store = s3_store

        result = _service(settings, store, repository).generate_presigned_put(MEMBER, "tool.exe", 100, "composer")

        assert result.codes == [ValidationCode.EXTENSION_NOT_AUTHORIZED]

    def test_zero_size(self, s3_store, repository):
        settings, store = s3_store

        result = _service(settings, store, repository).generate_presigned_put(MEMBER, "doc.pdf", 0, "composer")

        assert result.codes == [ValidationCode.SIZE_ZERO]

    def test_internal_store_not_found(self, settings, local_store, repository):
        with pytest.raises(NotFound):
            _service(settings, local_store, repository).generate_presigned_put(MEMBER, "doc.pdf", 100, "composer")


# ---------------------------------------------------------------------------
# Privileges
# ---------------------------------------------------------------------------


class TestRetainHours:
    def test_admin_sets_retain_hours(self, settings, local_store, repository, png_bytes):
        upload = _service(settings, local_store, repository).create_upload(
            ADMIN, _payload("cat.png", png_bytes), None, "composer", retain_hours=48
        )
        assert upload.retain_hours == 48

    def test_non_admin_retain_hours_ignored(self, settings, local_store, repository, png_bytes):
        upload = _service(settings, local_store, repository).create_upload(
            MEMBER, _payload("cat.png", png_bytes), None, "composer", retain_hours=48
        )
        assert upload.retain_hours is None

    def test_zero_is_ignored(self, settings, local_store, repository, png_bytes):
        upload = _service(settings, local_store, repository).create_upload(
            ADMIN, _payload("cat.png", png_bytes), None, "composer", retain_hours=0
        )
        assert upload.retain_hours is None


class TestAvatarPolicy:
    @pytest.mark.parametrize(
        "setting,actor,allowed",
        [
            ("disabled", MEMBER, False),
            ("disabled", ADMIN, True),
            ("admin", Actor(id=2, moderator=True), False),
            ("staff", Actor(id=2, moderator=True), True),
            ("2", Actor(id=3, trust_level=1), False),
            ("2", Actor(id=3, trust_level=2), True),
            ("0", None, False),
        ],
    )
    def test_allow_uploaded_avatars(self, make_settings, local_store, repository, setting, actor, allowed):
        service = _service(make_settings(ALLOW_UPLOADED_AVATARS=setting), local_store, repository)
        assert service.can_upload_type(actor, "avatar") is allowed

    def test_connect_override_blocks_non_admins(self, make_settings, local_store, repository):
        settings = make_settings(ALLOW_UPLOADED_AVATARS="0", DISCOURSE_CONNECT_OVERRIDES_AVATAR=True)
        service = _service(settings, local_store, repository)

        assert service.can_upload_type(MEMBER, "avatar") is False
        assert service.can_upload_type(ADMIN, "avatar") is True

    def test_other_types_unrestricted(self, make_settings, local_store, repository):
        service = _service(make_settings(ALLOW_UPLOADED_AVATARS="disabled"), local_store, repository)
        assert service.can_upload_type(MEMBER, "composer") is True


class TestNormalizeUploadType:
    def test_upload_type_preferred(self):
        assert normalize_upload_type("composer", "avatar") == "avatar"

    def test_falls_back_to_type(self):
        assert normalize_upload_type("composer", None) == "composer"

    def test_slugified(self):
        assert normalize_upload_type(None, "Site Setting") == "site_setting"
        assert normalize_upload_type(None, "Café Logo") == "cafe_logo"

    def test_capped_length(self):
        assert len(normalize_upload_type(None, "a" * 80)) == 50

    @pytest.mark.parametrize("type_,upload_type", [(None, None), ("", "  "), (None, "???")])
    def test_missing_type_rejected(self, type_, upload_type):
        with pytest.raises(InvalidParameters):
            normalize_upload_type(type_, upload_type)
