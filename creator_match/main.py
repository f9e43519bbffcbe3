# creator_match/main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from creator_match.config import Settings, load_settings
from creator_match.context import AppContext, create_context
from creator_match.errors import NotFoundError, PersistenceError, ProviderError, ValidationError
from creator_match.middleware.logging import RequestIdMiddleware
from creator_match.routers.auth_router import router as auth_router
from creator_match.routers.match_router import router as match_router
from creator_match.routers.media_router import router as media_router
from creator_match.routers.metrics_router import router as metrics_router

GENERIC_PROVIDER_DETAILS = "Instagram request failed"


def configure_structlog(level: str = "INFO"):
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
    )


logger = structlog.get_logger()


def _error_body(error: str, details: Optional[str] = None) -> dict:
    body = {"success": False, "error": error}
    if details is not None:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def on_validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=_error_body(str(exc)))

    @app.exception_handler(RequestValidationError)
    async def on_request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=_error_body("Invalid request body", str(exc.errors())))

    @app.exception_handler(NotFoundError)
    async def on_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=_error_body(str(exc)))

    @app.exception_handler(ProviderError)
    async def on_provider_error(request: Request, exc: ProviderError):
        logger.warning("provider_error", error=exc.message, status=exc.status, code=exc.code)
        return JSONResponse(status_code=500, content=_error_body(exc.message, exc.details or GENERIC_PROVIDER_DETAILS))

    @app.exception_handler(PersistenceError)
    async def on_persistence_error(request: Request, exc: PersistenceError):
        return JSONResponse(status_code=500, content=_error_body(str(exc)))


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    settings = settings or (context.settings if context else load_settings())
    configure_structlog(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = context is None
        app.state.context = context or await create_context(settings)
        logger.info("app_startup", environment=settings.environment)
        try:
            yield
        finally:
            if owned:
                await app.state.context.aclose()

    app = FastAPI(title="Creator Match", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(media_router)
    app.include_router(metrics_router)
    app.include_router(match_router)

    @app.get("/health")
    def health_check() -> dict:
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("creator_match.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
