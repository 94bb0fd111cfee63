"""
CareerChat AI - FastAPI application entry point.

Run with ``python -m careerchat.main`` or ``uvicorn careerchat.main:app``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import auth_router, chat_router
from .config import settings
from .core.exceptions import ChatError
from .core.logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .storage import LocalStorage, init_user_storage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings)
    init_user_storage(LocalStorage(settings.local_storage_path))

    logger.info(
        f"{settings.app_name} v{settings.app_version} ready",
        extra={"extra_fields": {
            "storage_path": settings.local_storage_path,
            "llm_provider": settings.llm_provider,
            "llm_configured": bool(settings.resolved_llm_api_key),
            "debug": settings.debug,
        }}
    )
    yield
    logger.info(f"{settings.app_name} stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="AI career counselor: chat sessions with an LLM-backed coach",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Domain errors that escaped a router keep their status and message."""
    logger.warning(
        f"Unhandled {type(exc).__name__} on {request.url.path}: {exc.message}",
        extra={"extra_fields": {"code": exc.code, **exc.details}}
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


app.include_router(auth_router)
app.include_router(chat_router)


@app.get("/")
async def root():
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "storage": settings.storage_type,
        "llm_configured": bool(settings.resolved_llm_api_key),
        "version": settings.app_version,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("careerchat.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
