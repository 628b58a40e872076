"""
Domain errors and their translation to HTTP responses.

Every failure detected by the services is an `ApiError` tagged with an
`ErrorKind`. `install_error_handlers` registers the single place where kinds
(and the library errors that escape the services) become status codes.
"""
import logging
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from jose import ExpiredSignatureError, JWTError
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    BAD_REQUEST = "BadRequest"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    INTERNAL = "Internal"


STATUS_CODES = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class ApiError(Exception):
    def __init__(self, kind: ErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def __repr__(self):
        return f"ApiError({self.kind.value}, {self.message!r})"


def bad_request(message: str = "Bad Request") -> ApiError:
    return ApiError(ErrorKind.BAD_REQUEST, message)


def unauthorized(message: str = "Unauthorized") -> ApiError:
    return ApiError(ErrorKind.UNAUTHORIZED, message)


def forbidden(message: str = "Not authorized to access this route") -> ApiError:
    return ApiError(ErrorKind.FORBIDDEN, message)


def not_found(message: str = "Resource not found") -> ApiError:
    return ApiError(ErrorKind.NOT_FOUND, message)


def conflict(message: str = "Conflict") -> ApiError:
    return ApiError(ErrorKind.CONFLICT, message)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        if exc.kind is ErrorKind.INTERNAL:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
            return error_response(exc.status_code, "Server Error")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(400, _validation_message(exc))

    @app.exception_handler(DuplicateKeyError)
    async def handle_duplicate_key(request: Request, exc: DuplicateKeyError):
        logger.warning("Duplicate key on %s %s: %s", request.method, request.url.path, exc.details)
        return error_response(409, "Duplicate field value entered")

    @app.exception_handler(ExpiredSignatureError)
    async def handle_expired_token(request: Request, exc: ExpiredSignatureError):
        return error_response(401, "Token expired")

    @app.exception_handler(JWTError)
    async def handle_jwt_error(request: Request, exc: JWTError):
        return error_response(401, "Invalid token")

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, "Server Error")
