"""Main FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from keyhouse.api.v1.routes import keys, metrics, migrations
from keyhouse.core.config import settings
from keyhouse.core.exceptions import KeyhouseError
from keyhouse.core.logging_config import configure_logging
from keyhouse.middleware.request_id import RequestIDMiddleware, request_id_var

configure_logging(settings.log_level, settings.resolved_log_format)

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-tenant key store with bulk key migration",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)


def _error_response(status_code: int, code: str, message: str, recovery_hint: str, **extra) -> JSONResponse:
    body = {
        "code": code,
        "message": message,
        "recovery_hint": recovery_hint,
        "request_id": request_id_var.get() or None,
        **extra,
    }
    return JSONResponse(status_code=status_code, content={"error": body})


@app.exception_handler(KeyhouseError)
async def keyhouse_error_handler(request: Request, exc: KeyhouseError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.message)
    extra = {} if exc.opaque or not exc.details else {"details": exc.details}
    return _error_response(exc.status_code, exc.error_code, exc.message, exc.recovery_hint, **extra)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Only location and message: pydantic's "input" may echo key material
    problems = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return _error_response(
        400,
        "BAD_REQUEST",
        "The request body is malformed.",
        "Fix the listed fields and retry.",
        problems=problems,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(
        500,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred.",
        "Retry later. If the problem persists, contact support with the request_id.",
    )


app.include_router(migrations.router)
app.include_router(keys.router)
app.include_router(metrics.router)


@app.get("/v1/liveness", tags=["health"])
async def liveness() -> dict:
    """Liveness probe."""
    return {"status": "ok", "version": settings.app_version}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "keyhouse.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
