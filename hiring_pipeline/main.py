import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hiring_pipeline.api.router import api_router
from hiring_pipeline.core.config import settings
from hiring_pipeline.core.errors import (
    ApplicationNotFound,
    InvalidRequest,
    PipelineError,
    StorageError,
    TransitionError,
)
from hiring_pipeline.middleware.logging import RequestLoggingMiddleware
from hiring_pipeline.services.locks import ApplicationLockRegistry
from hiring_pipeline.services.notifications import LoggingNotifier

logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger("hp.app")

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(RequestLoggingMiddleware)

# Application-scoped collaborators, injected into routes through api.deps.
app.state.lock_registry = ApplicationLockRegistry(timeout_seconds=settings.lock_timeout_seconds)
app.state.notifier = LoggingNotifier()


@app.exception_handler(TransitionError)
async def _transition_error_handler(_request: Request, exc: TransitionError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": exc.as_dict()})


@app.exception_handler(StorageError)
async def _storage_error_handler(_request: Request, exc: StorageError) -> JSONResponse:
    logger.warning("storage_error", extra={"error_message": exc.message, "retryable": exc.retryable})
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=503,
        content={"error": {"code": exc.code, "message": exc.message, "retryable": exc.retryable}},
        headers=headers,
    )


@app.exception_handler(ApplicationNotFound)
async def _not_found_handler(_request: Request, exc: ApplicationNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": {"code": exc.code, "message": exc.message}})


@app.exception_handler(InvalidRequest)
async def _invalid_request_handler(_request: Request, exc: InvalidRequest) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": {"code": exc.code, "message": exc.message, "details": exc.details}},
    )


@app.exception_handler(PipelineError)
async def _pipeline_error_handler(_request: Request, exc: PipelineError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": {"code": exc.code, "message": exc.message}})


@app.get("/health")
async def health_check():
    return {"status": "ok", "environment": settings.environment}


app.include_router(api_router)
