"""
CineBook API application
"""

from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from cinebook.config import settings
from cinebook.core.database import init_db, close_db
from cinebook.core.exceptions import CinebookException
from cinebook.core.logging import setup_logging
from cinebook.core.metrics import metrics_collector
from cinebook.core.redis import init_redis, close_redis
from cinebook.api.v1.api import api_router
from cinebook.schemas.response import ErrorResponse
from cinebook.services.hold_sweeper import hold_sweeper

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.APP_ENV})")

    await init_db()
    if settings.LOCK_BACKEND == "redis":
        await init_redis()
    await hold_sweeper.start()

    yield

    logger.info("Shutting down")
    await hold_sweeper.stop()
    await close_db()
    if settings.LOCK_BACKEND == "redis":
        await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    description="Cinema seat inventory and booking engine",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def track_requests(request: Request, call_next):
    """
    Request id propagation and per-route Prometheus metrics
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start_time

    # Route template keeps label cardinality bounded
    route = request.scope.get("route")
    metrics_collector.record_request(
        request.method,
        getattr(route, "path", "unmatched"),
        response.status_code,
        duration,
    )

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = f"{duration:.4f}"
    return response


def error_response(status_code: int, message: str, code: str, details: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.build(message, code, details).model_dump(),
    )


@app.exception_handler(CinebookException)
async def cinebook_exception_handler(request: Request, exc: CinebookException):
    if exc.status_code >= 500:
        logger.error(
            f"{exc.code}: {exc.message}",
            extra={"request_id": getattr(request.state, "request_id", None)}
        )
    return error_response(exc.status_code, exc.message, exc.code, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg")}
        for error in exc.errors()
    ]
    return error_response(422, "Request validation failed", "VALIDATION_ERROR", {"errors": errors})


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.error(f"Internal server error: {exc}", exc_info=True)
    return error_response(500, "An internal server error occurred", "INTERNAL_ERROR")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.APP_ENV,
        "api_docs": "/docs" if settings.DEBUG else None
    }


app.include_router(api_router, prefix=settings.API_PREFIX)

if settings.PROMETHEUS_ENABLED:
    app.mount("/metrics", make_asgi_app())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cinebook.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_config=None
    )
