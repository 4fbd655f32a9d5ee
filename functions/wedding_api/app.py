"""
FastAPI application entry point for the wedding invitation backend.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wedding_api.auth import IdentityProvider
from wedding_api.config import Settings, get_settings
from wedding_api.db import DocumentStore
from wedding_api.dependencies import (
    build_document_store,
    build_identity_provider,
    build_media_storage,
)
from wedding_api.errors import UpstreamError, WeddingApiError
from wedding_api.routes import build_router
from wedding_api.storage import MediaStorage

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(WeddingApiError)
    async def handle_api_error(request: Request, exc: WeddingApiError):
        if isinstance(exc, UpstreamError):
            logger.error(
                "%s %s failed upstream: %s", request.method, request.url.path, exc.message
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.as_dict(),
            headers=dict(exc.headers) if exc.headers else None,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "message": "Invalid request.",
                "errors": jsonable_encoder(exc.errors()),
            },
        )


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[DocumentStore] = None,
    media: Optional[MediaStorage] = None,
    identity: Optional[IdentityProvider] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Wedding Invitation Backend", version="0.1.0")
    app.state.settings = settings
    app.state.store = store if store is not None else build_document_store(settings)
    app.state.media = media if media is not None else build_media_storage(settings)
    app.state.identity = (
        identity if identity is not None else build_identity_provider(settings)
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    _register_error_handlers(app)
    app.include_router(build_router(), prefix=settings.api_prefix)
    return app
