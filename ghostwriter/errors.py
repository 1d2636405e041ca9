from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from fastapi import HTTPException


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    BAD_JSON = "bad_json"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    CONFIGURATION = "configuration"
    EMPTY_RESPONSE = "empty_response"
    PROVIDER_FAILURE = "provider_failure"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.BAD_JSON: 400,
    ErrorKind.PAYLOAD_TOO_LARGE: 413,
    ErrorKind.METHOD_NOT_ALLOWED: 405,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.EMPTY_RESPONSE: 502,
    ErrorKind.PROVIDER_FAILURE: 502,
    ErrorKind.TIMEOUT: 504,
    # nginx convention for "client closed request"
    ErrorKind.CANCELLED: 499,
}

# Short client-facing messages for failures the gateway classifies.
OUTCOME_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.EMPTY_RESPONSE: "empty response",
    ErrorKind.PROVIDER_FAILURE: "failed",
    ErrorKind.TIMEOUT: "timed out",
    ErrorKind.CANCELLED: "cancelled",
}

MESSAGE_NOT_FOUND = "not found"
MESSAGE_RATE_LIMITED = "rate limited"
MESSAGE_BAD_JSON = "bad json"
MESSAGE_PAYLOAD_TOO_LARGE = "payload too large"


class ApiError(HTTPException):
    """HTTP failure rendered as the ``{ok: false, error, details?}`` envelope."""

    def __init__(self, kind: ErrorKind, error: str, details: Optional[str] = None) -> None:
        super().__init__(status_code=STATUS_BY_KIND[kind], detail=error)
        self.kind = kind
        self.error = error
        self.details = details

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"ok": False, "error": self.error}
        if self.details:
            payload["details"] = self.details
        return payload


class ProviderError(Exception):
    """Raised by provider backends for HTTP, connection and payload failures."""
