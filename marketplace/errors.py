# marketplace/errors.py
"""Error kinds raised by the listing core.

Every error carries a machine-readable ``code``, a human ``message`` and the
HTTP status the API layer renders it with.
"""
from typing import Dict, List, Optional


class MarketplaceError(Exception):
    code = "MARKETPLACE_ERROR"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_payload(self) -> Dict:
        return {"ok": False, "code": self.code, "message": self.message}


class ValidationError(MarketplaceError):
    code = "VALIDATION_ERROR"
    status_code = 400


class AuthorizationError(MarketplaceError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(MarketplaceError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(MarketplaceError):
    code = "VERSION_CONFLICT"
    status_code = 409

    def __init__(self, message: str, expected: Optional[int] = None, actual: Optional[int] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual

    def to_payload(self) -> Dict:
        payload = super().to_payload()
        if self.expected is not None:
            payload["expected_version"] = int(self.expected)
        if self.actual is not None:
            payload["current_version"] = int(self.actual)
        return payload


class IllegalTransitionError(MarketplaceError):
    code = "ILLEGAL_TRANSITION"
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move listing from {current} to {target}")
        self.current = current
        self.target = target


class StorageError(MarketplaceError):
    """Blob or document I/O failure.

    ``uploaded`` lists the URLs that made it into the blob store before a
    batch upload failed; they are not rolled back.
    """
    code = "STORAGE_ERROR"
    status_code = 502

    def __init__(self, message: str, uploaded: Optional[List[str]] = None):
        super().__init__(message)
        self.uploaded = list(uploaded or [])
