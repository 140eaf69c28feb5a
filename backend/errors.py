"""
Error taxonomy shared by the store, the clustering engine and the HTTP layer.

Every error carries a stable `code` and the HTTP status it maps to. The handlers in
`api/errors.py` decide which messages are safe to pass through to callers.
"""
from __future__ import annotations


class ZoningAppError(Exception):
    code = "internal_error"
    status = 500
    # Whether `str(exc)` may be shown to API callers as-is.
    expose_message = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ZoningAppError):
    """Malformed caller input. Always raised before any side effect."""

    code = "validation_error"
    status = 400


class NotFoundError(ZoningAppError):
    code = "not_found"
    status = 404


class PartialMatchError(ZoningAppError):
    """
    Some, but not all, requested parcels existed.

    The matched rows are already committed when this is raised.
    """

    code = "partial_match"
    status = 409

    def __init__(self, message: str, *, requested_count: int, updated_count: int):
        super().__init__(message)
        self.requested_count = requested_count
        self.updated_count = updated_count


class PermissionDenied(ZoningAppError):
    code = "permission_denied"
    status = 403
    expose_message = False


class StorageUnavailable(ZoningAppError):
    code = "storage_unavailable"
    status = 503
    expose_message = False


class MalformedGeometry(ZoningAppError):
    """A single parcel boundary could not be parsed. Logged and skipped, never surfaced."""

    code = "malformed_geometry"
    status = 500
