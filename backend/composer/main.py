import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from composer.api import compose
from composer.config import get_settings
from composer.constants.error_codes import get_error_spec
from composer.exceptions import ComposerError
from composer.schemas.envelope import ErrorInfo, ErrorResponse

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ComposerError)
async def composer_exception_handler(request: Request, exc: ComposerError) -> JSONResponse:
    """Render composition failures as {"error": {...}, "duration_ms": ...}."""
    if exc.status_code >= 500:
        logger.error(f"Composition failed: {exc.code}: {exc.message}")
    else:
        logger.info(f"Composition rejected: {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_response().model_dump(exclude_none=True)),
    )


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    spec = get_error_spec("INTERNAL_ERROR")
    response = ErrorResponse(
        error=ErrorInfo(
            code="INTERNAL_ERROR",
            message="Internal server error",
            retryable=spec.get("retryable", False),
            suggested_fix=spec.get("suggested_fix"),
        )
    )
    return JSONResponse(
        status_code=500,
        content=jsonable_encoder(response.model_dump(exclude_none=True)),
    )


# Routers
app.include_router(compose.router, tags=["compose"])


def run() -> None:
    import uvicorn

    uvicorn.run("composer.main:app", host=settings.host, port=settings.port)
