"""
Error taxonomy for voice form calls.

Every failure that can end or prevent a call is represented by a CallError
subclass carrying a stable error code. The code travels over the wire in
call.error messages and keys the human-readable messages shown to the user.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Error codes shared by the server and the client."""

    MIC = "Mic"
    CONNECTION = "Connection"
    UNAUTHORIZED = "Unauthorized"
    INTERNAL_SERVER = "InternalServer"
    MISSING_URL = "MissingUrl"
    MISSING_PARAMS = "MissingParams"
    BAD_REQUEST = "BadRequest"
    NOT_FOUND = "NotFound"
    UNKNOWN = "Unknown"


class CallError(Exception):
    """Base class for call errors."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class HandshakeValidationError(CallError):
    """The handshake payload is malformed or violates the parameter contract."""

    code = ErrorCode.BAD_REQUEST


class HandshakeTimeoutError(CallError):
    """No handshake payload arrived in time."""

    code = ErrorCode.MISSING_PARAMS


class MicAccessError(CallError):
    code = ErrorCode.MIC


class CallConnectionError(CallError):
    code = ErrorCode.CONNECTION


class AuthError(CallError):
    code = ErrorCode.UNAUTHORIZED


class ServerError(CallError):
    code = ErrorCode.INTERNAL_SERVER


class NotFoundError(CallError):
    code = ErrorCode.NOT_FOUND


class BadRequestError(CallError):
    code = ErrorCode.BAD_REQUEST


class MissingUrlError(CallError):
    code = ErrorCode.MISSING_URL


_ERRORS_BY_CODE = {
    ErrorCode.MIC: MicAccessError,
    ErrorCode.CONNECTION: CallConnectionError,
    ErrorCode.UNAUTHORIZED: AuthError,
    ErrorCode.INTERNAL_SERVER: ServerError,
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.BAD_REQUEST: BadRequestError,
    ErrorCode.MISSING_URL: MissingUrlError,
    ErrorCode.MISSING_PARAMS: HandshakeTimeoutError,
}


def error_from_code(code: str, message: str = "") -> CallError:
    """Build the CallError matching a wire error code."""
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return CallError(message or f"Unknown error code: {code}")
    error_cls = _ERRORS_BY_CODE.get(error_code, CallError)
    return error_cls(message, code=error_code)


def error_from_http_status(status: int, message: str = "") -> CallError:
    """Classify a failed websocket upgrade by its HTTP status."""
    if status in (401, 403):
        return AuthError(message)
    if status == 404:
        return NotFoundError(message)
    if status == 400:
        return BadRequestError(message)
    if status >= 500:
        return ServerError(message)
    return CallConnectionError(message)
