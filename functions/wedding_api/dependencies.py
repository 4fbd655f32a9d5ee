"""
Dependency wiring for the FastAPI app.

Clients are built once per app by ``create_app`` and kept on ``app.state``;
the ``get_*`` dependencies hand them to route handlers, so tests can inject
fakes by passing them to ``create_app``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, TypeVar

import firebase_admin
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import credentials, firestore

from wedding_api.auth import (
    FirebaseIdentityProvider,
    Identity,
    IdentityProvider,
    InMemoryIdentityProvider,
)
from wedding_api.config import Settings
from wedding_api.db import (
    DocumentStore,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    SqlDocumentStore,
)
from wedding_api.errors import AuthError, UpstreamUnavailableError
from wedding_api.storage import InMemoryMediaStorage, MediaStorage, S3MediaStorage

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "wedding-api"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

T = TypeVar("T")

bearer_scheme = HTTPBearer(auto_error=False)


def _use_memory(settings: Settings) -> bool:
    return settings.wedding_use_in_memory_backends or settings.document_store == "memory"


def _firebase_credential(settings: Settings):
    if settings.firebase_credentials:
        return credentials.Certificate(settings.firebase_credentials)
    if settings.firebase_client_email and settings.firebase_private_key:
        # Keys pasted into env files usually carry escaped newlines.
        return credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                "private_key": settings.firebase_private_key.replace("\\n", "\n"),
                "token_uri": GOOGLE_TOKEN_URI,
            }
        )
    return credentials.ApplicationDefault()


def get_firebase_app(settings: Settings) -> firebase_admin.App:
    """Return the named Firebase app, initializing it on first use."""
    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        options = {}
        if settings.firebase_project_id:
            options["projectId"] = settings.firebase_project_id
        return firebase_admin.initialize_app(
            _firebase_credential(settings), options, name=FIREBASE_APP_NAME
        )


def build_document_store(settings: Settings) -> DocumentStore:
    if _use_memory(settings):
        logger.warning("Using in-memory document store; data will not persist")
        return InMemoryDocumentStore()
    if settings.document_store == "sql":
        return SqlDocumentStore(settings.database_url or "")
    client = firestore.client(app=get_firebase_app(settings))
    return FirestoreDocumentStore(client, timeout=settings.upstream_timeout_seconds)


def build_media_storage(settings: Settings) -> MediaStorage:
    if _use_memory(settings):
        return InMemoryMediaStorage()
    if not settings.asset_bucket:
        raise ValueError("ASSET_BUCKET is required unless in-memory backends are used")
    return S3MediaStorage(
        bucket=settings.asset_bucket,
        region=settings.asset_region or "",
        endpoint=settings.asset_endpoint or "",
        access_key_id=settings.aws_access_key_id or "",
        secret_access_key=settings.aws_secret_access_key or "",
        public_base_url=settings.asset_public_base_url,
        timeout=settings.upstream_timeout_seconds,
    )


def build_identity_provider(settings: Settings) -> IdentityProvider:
    if _use_memory(settings):
        return InMemoryIdentityProvider()
    return FirebaseIdentityProvider(
        get_firebase_app(settings),
        api_key=settings.firebase_api_key or "",
        timeout=settings.upstream_timeout_seconds,
    )


def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_media_storage(request: Request) -> MediaStorage:
    return request.app.state.media


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity


async def run_upstream(request: Request, func: Callable[..., T], *args, **kwargs) -> T:
    """
    Run a blocking client call in a worker thread under the request deadline.

    On timeout the request fails right away; the abandoned call still ends
    within the client's own upstream timeout.
    """
    timeout: Optional[float] = request.app.state.settings.request_timeout_seconds
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        logger.error(
            "%s %s exceeded the %.1fs request deadline",
            request.method,
            request.url.path,
            timeout,
        )
        raise UpstreamUnavailableError("Upstream request timed out") from e


async def require_user(
    request: Request,
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    if bearer is None or not bearer.credentials:
        raise AuthError("No token provided")
    user = await run_upstream(request, identity.verify_token, bearer.credentials)
    request.state.user = user
    return user
