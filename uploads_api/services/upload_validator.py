# uploads_api/services/upload_validator.py
"""
Validation gate for uploads.

Runs before any byte is committed to storage. Images are exempt from the
attachment ceiling here because later processing may shrink them; only
non-image files are rejected up front for size.

Usage:
    result = UploadValidator(settings).validate("report.pdf", 12_000_000, "composer")
    if not result.ok:
        return result.errors  # {"file": ["Sorry, the file ..."]}
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath

from uploads_api.config import Settings

logger = logging.getLogger(__name__)

SUPPORTED_IMAGES = frozenset({"jpg", "jpeg", "png", "gif", "svg", "ico", "webp", "avif"})
INLINE_IMAGES = SUPPORTED_IMAGES - {"svg"}

SIZE_ZERO_MESSAGE = (
    "Sorry, it seems that something went wrong, the file you're trying to upload is 0 byte. "
    "Please try again."
)
TOO_LARGE_MESSAGE = "Sorry, the file you are trying to upload is too big (maximum size is {max_size})."
FILE_MISSING_MESSAGE = "Sorry, you must provide a file to upload."
EXTENSION_NOT_AUTHORIZED_MESSAGE = (
    "Sorry, the file you are trying to upload is not authorized (authorized extensions: {extensions})."
)


class ValidationCode(str, Enum):
    """Machine-readable reasons a validation failed."""
    SIZE_ZERO = "size_zero"
    TOO_LARGE = "too_large"
    FILE_MISSING = "file_missing"
    EXTENSION_NOT_AUTHORIZED = "extension_not_authorized"


@dataclass
class ValidationResult:
    """Outcome of validation: empty errors means pass."""

    errors: dict[str, list[str]] = field(default_factory=dict)
    codes: list[ValidationCode] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, field_name: str, code: ValidationCode, message: str) -> None:
        self.errors.setdefault(field_name, []).append(message)
        self.codes.append(code)

    @property
    def messages(self) -> list[str]:
        """All messages flattened, in insertion order."""
        return [message for messages in self.errors.values() for message in messages]

    @classmethod
    def file_missing(cls) -> "ValidationResult":
        result = cls()
        result.add("file", ValidationCode.FILE_MISSING, FILE_MISSING_MESSAGE)
        return result


def extension_of(file_name: str | None) -> str:
    if not file_name:
        return ""
    return PurePosixPath(file_name).suffix.lstrip(".").lower()


def is_supported_image(file_name: str | None) -> bool:
    return extension_of(file_name) in SUPPORTED_IMAGES


def is_inline_image(file_name: str | None) -> bool:
    return extension_of(file_name) in INLINE_IMAGES


def number_to_human_size(size: int) -> str:
    """Render a byte count like '4 MB' or '1.5 KB' (binary units, 3 significant digits)."""
    if size < 1024:
        return "1 Byte" if size == 1 else f"{size} Bytes"

    value = float(size)
    for unit in ("KB", "MB", "GB", "TB"):
        value /= 1024
        if value < 1024 or unit == "TB":
            break

    digits = max(3 - len(str(int(value))), 0)
    rendered = f"{value:.{digits}f}"
    if "." in rendered:
        rendered = rendered.rstrip("0").rstrip(".")
    return f"{rendered} {unit}"


class UploadValidator:
    """Size and type policy checks; pure function of inputs and settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def validate(self, file_name: str, file_size: int, upload_type: str | None = None) -> ValidationResult:
        result = ValidationResult()

        if file_size == 0:
            result.add("file", ValidationCode.SIZE_ZERO, SIZE_ZERO_MESSAGE)
            return result

        if self.file_size_too_big(file_name, file_size):
            result.add(
                "file",
                ValidationCode.TOO_LARGE,
                TOO_LARGE_MESSAGE.format(max_size=number_to_human_size(self.settings.max_attachment_size_bytes)),
            )

        if not result.ok:
            logger.info(
                f"[VALIDATOR] Rejected {file_name} ({file_size} bytes, type={upload_type}): {result.codes}"
            )
        return result

    def file_size_too_big(self, file_name: str, file_size: int) -> bool:
        return not is_supported_image(file_name) and file_size >= self.settings.max_attachment_size_bytes

    def check_extension(self, file_name: str) -> ValidationResult:
        """Reject extensions outside AUTHORIZED_EXTENSIONS ('*' allows all)."""
        result = ValidationResult()
        authorized = self.settings.authorized_extensions
        if "*" in authorized:
            return result

        if extension_of(file_name) not in authorized:
            result.add(
                "original_filename",
                ValidationCode.EXTENSION_NOT_AUTHORIZED,
                EXTENSION_NOT_AUTHORIZED_MESSAGE.format(extensions=", ".join(sorted(authorized))),
            )
        return result
