"""RFC 7807 Problem Details error handling.

Every error leaving the API, whether raised by the import service, the
import engine, request validation or routing, is rendered as:

    {
        "type": "about:blank",
        "title": "Unprocessable Entity",
        "status": 422,
        "detail": "no transactions found in file",
        "instance": "/api/v1/imports/upload"
    }

Import-engine ExtractionError (AI response without JSON) and OpenAI client
failures are reported as 502: the upstream model failed, not the client.
"""

import openai
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from packages.statement_import.errors import ExtractionError

logger = structlog.get_logger()

SUPPORTED_FORMATS_MESSAGE = (
    "unsupported file format. Supported formats: PDF (.pdf), CSV (.csv), OFX (.ofx, .qfx)"
)


# Fixed titles; http.HTTPStatus phrases differ between Python versions
STATUS_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    413: "Payload Too Large",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


class AppError(Exception):
    """Base application error."""

    status_code = 500

    def __init__(self, detail: str, status_code: int = None, error_type: str = "about:blank"):
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        self.error_type = error_type
        super().__init__(detail)


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail)


class ValidationError(AppError):
    """Request content is well-formed but cannot be imported."""

    status_code = 422

    def __init__(self, detail: str = "Validation failed"):
        super().__init__(detail)


class UnsupportedFormatError(ValidationError):
    def __init__(self, detail: str = SUPPORTED_FORMATS_MESSAGE):
        super().__init__(detail)


class PayloadTooLargeError(AppError):
    status_code = 413

    def __init__(self, detail: str = "File too large"):
        super().__init__(detail)


class ExtractionFailedError(AppError):
    """The AI extraction service returned an unusable response."""

    status_code = 502

    def __init__(self, detail: str = "AI response did not contain valid JSON"):
        super().__init__(detail)


def problem_response(
    request: Request, status: int, detail: str, error_type: str = "about:blank"
) -> JSONResponse:
    """Build an RFC 7807 response for ``request``."""
    body = {
        "type": error_type,
        "title": STATUS_TITLES.get(status, "Error"),
        "status": status,
        "detail": detail,
        "instance": str(request.url.path),
    }
    request_id = getattr(request.state, "request_id", "")
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=status, content=body)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error.get('msg', 'invalid')}" if location else error.get("msg", "invalid"))
    return "; ".join(parts) or "Validation failed"


def app_error_response(request: Request, exc: AppError) -> JSONResponse:
    return problem_response(request, exc.status_code, exc.detail, exc.error_type)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return app_error_response(request, exc)

    @app.exception_handler(ExtractionError)
    async def extraction_error_handler(request: Request, exc: ExtractionError) -> JSONResponse:
        logger.warning("ai_extraction_failed", detail=exc.detail, path=str(request.url.path))
        return app_error_response(request, ExtractionFailedError(exc.detail))

    @app.exception_handler(openai.OpenAIError)
    async def ai_provider_error_handler(request: Request, exc: openai.OpenAIError) -> JSONResponse:
        logger.error("ai_provider_failed", error=str(exc), path=str(request.url.path))
        return app_error_response(
            request, ExtractionFailedError("AI extraction service unavailable")
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return problem_response(request, 422, _describe_validation_errors(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return problem_response(request, exc.status_code, detail)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", path=str(request.url.path), exc_info=exc)
        return problem_response(request, 500, "An unexpected error occurred")
