"""
Maps the admission error taxonomy onto HTTP responses.

Malformed path parameters and bodies rejected by FastAPI are reported as
400 with the same `{"detail": ...}` shape as a domain ValidationError.
"""

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from admissions.core.exceptions import AdmissionError, PersistenceError
from admissions.core.logging import get_logger

logger = get_logger(__name__)


async def admission_error_handler(request: Request, exc: AdmissionError) -> JSONResponse:
    if isinstance(exc, PersistenceError):
        logger.error("persistence_error", detail=exc.detail, cause=str(exc.__cause__))
    content = {"detail": exc.detail}
    content.update({key: value for key, value in exc.extra.items() if value is not None})
    return JSONResponse(status_code=exc.status_code, content=content)


def _describe(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg', 'invalid value')}" if location else error.get("msg", "invalid value")


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.info("request_validation_failed", path=request.url.path, error_count=len(errors))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "; ".join(_describe(error) for error in errors) or "Invalid request",
            "errors": jsonable_encoder(errors),
        },
    )
