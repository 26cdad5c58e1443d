# -*- coding: utf-8 -*-
"""
Typed failures raised by the core services.

Every failure carries an ``ErrorKind``; callers branch on ``err.kind`` rather
than on exception identity.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_TRANSITION = "invalid_transition"
    FORBIDDEN = "forbidden"
    UNPROCESSABLE_ENTITY = "unprocessable_entity"
    UNVERIFIED = "unverified"
    BAD_REQUEST = "bad_request"
    PROVIDER_ERROR = "provider_error"

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self]


HTTP_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.UNPROCESSABLE_ENTITY: 422,
    ErrorKind.UNVERIFIED: 400,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.PROVIDER_ERROR: 502,
}


class CoreError(Exception):
    """A domain failure with a kind, a human message and optional details."""

    def __init__(self, kind: ErrorKind, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}

    def __repr__(self):
        return f"CoreError({self.kind.value!r}, {self.message!r})"

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.kind.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


def not_found(what: str) -> CoreError:
    return CoreError(ErrorKind.NOT_FOUND, f"{what} not found")


def forbidden(message: str = "you don't have permission for this action") -> CoreError:
    return CoreError(ErrorKind.FORBIDDEN, message)
