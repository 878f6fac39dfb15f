# uploads_api/errors.py
"""
Error taxonomy for the upload pipeline.

Recoverable validation problems (size, type, missing file) are not
exceptions: the orchestrator returns a ValidationResult and the router turns
it into a 422. The exceptions below cross component boundaries and are
mapped to HTTP responses by the handlers registered in main.py.
"""


class UploadsError(Exception):
    """Base class for upload pipeline errors."""

    status_code = 500


class InvalidParameters(UploadsError):
    """Missing or malformed request parameters (including XHR on show)."""

    status_code = 400


class InvalidAccess(UploadsError):
    """The requester may not receive this upload."""

    status_code = 403


class NotFound(UploadsError):
    """Unknown upload, unknown site, or downloads hidden from anonymous users."""

    status_code = 404


class StoreError(UploadsError):
    """Backing store I/O failed after the store's own retry policy gave up."""

    status_code = 500
