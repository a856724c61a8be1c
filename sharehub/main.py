"""
Main FastAPI application for ShareHub API.
Serves health, auth, social CRUD, token functions, realtime and metrics.
"""
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from sharehub.api.routes import (
    auth,
    functions,
    groups,
    health,
    media,
    messages,
    notifications,
    posts,
    profiles,
    realtime,
    streams,
    tokens,
)
from sharehub.core.config import settings
from sharehub.core.errors import ShareHubError
from sharehub.core.logging import configure_logging
from sharehub.utils.metrics import router as metrics_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ShareHub API",
    description="Posts, media, messages, live streams and token unlocks",
    version="1.0.0",
)

# CORS: bearer-токены, без cookies -> Allow-Origin: * и на preflight
origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if not origins:
    origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or uuid4().hex
    started = time.perf_counter()
    response = await call_next(request)
    response.headers[settings.request_id_header] = request_id
    logger.info(
        "http_request",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "latency_ms": round((time.perf_counter() - started) * 1000, 1),
        },
    )
    return response


@app.exception_handler(ShareHubError)
async def sharehub_error_handler(request: Request, exc: ShareHubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", extra={"path": request.url.path, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router)
app.include_router(profiles.router)
app.include_router(posts.router)
app.include_router(media.router)
app.include_router(messages.router)
app.include_router(groups.router)
app.include_router(notifications.router)
app.include_router(streams.router)
app.include_router(tokens.router)
app.include_router(functions.router)
app.include_router(functions.webhook_router)
app.include_router(realtime.router)
app.include_router(metrics_router)

app.mount(
    settings.public_media_path,
    StaticFiles(directory=settings.storage_base_path, check_dir=False),
    name="uploads",
)
