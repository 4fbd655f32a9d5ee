"""
HTTP routes for the wedding invitation backend.

Every ``ResourceKind`` in the catalog gets the same four-verb shape:

    POST   {path}        create (JSON, or multipart when the kind carries a file)
    GET    {path}        list
    PUT    {path}/{id}   partial update
    DELETE {path}/{id}   delete
"""

from __future__ import annotations

import json
import logging
from typing import Callable, Iterable, Optional

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile as StarletteUploadFile

from wedding_api.auth import IdentityProvider
from wedding_api.catalog import ALL_KINDS
from wedding_api.db import DocumentStore
from wedding_api.dependencies import (
    get_document_store,
    get_identity_provider,
    get_media_storage,
    require_user,
    run_upstream,
)
from wedding_api.errors import ValidationError
from wedding_api.media import UploadPolicy
from wedding_api.resources import FileUpload, ResourceHandler, ResourceKind
from wedding_api.schemas import (
    CredentialsRequest,
    HealthResponse,
    SignUpResponse,
    TokenResponse,
)
from wedding_api.storage import MediaStorage

logger = logging.getLogger(__name__)

FILE_FIELD = "file"
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")

auth_router = APIRouter(tags=["Auth"])


@auth_router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@auth_router.post("/signup", response_model=SignUpResponse, status_code=201)
async def signup(
    payload: CredentialsRequest,
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    session = await run_upstream(
        request, identity.sign_up, payload.email, payload.password
    )
    logger.info("Created user %s", session.uid)
    return SignUpResponse(message="User created successfully", token=session.token)


@auth_router.post("/login", response_model=TokenResponse)
async def login(
    payload: CredentialsRequest,
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
):
    session = await run_upstream(
        request, identity.sign_in, payload.email, payload.password
    )
    return TokenResponse(token=session.token)


async def read_payload(
    request: Request, policy: Optional[UploadPolicy] = None
) -> tuple[dict, Optional[FileUpload]]:
    """
    Split a request body into text fields and the optional ``file`` part.
    Multipart and urlencoded forms are read as forms, anything else as JSON.

    The file part is only read into memory once it is known to fit
    ``policy``; without a policy a file part is refused unread.
    """
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        fields: dict = {}
        upload: Optional[FileUpload] = None
        for key, value in form.multi_items():
            if isinstance(value, StarletteUploadFile):
                if key != FILE_FIELD:
                    continue
                # Browsers send an empty, unnamed part when no file was chosen.
                if not value.filename and not value.size:
                    continue
                if policy is None:
                    raise ValidationError("This resource does not accept file uploads.")
                if value.size is not None:
                    policy.check_size(value.size)
                data = await value.read()
                upload = FileUpload(
                    filename=value.filename or "",
                    content_type=value.content_type or "",
                    data=data,
                )
            else:
                fields[key] = value
        return fields, upload

    body = await request.body()
    if not body.strip():
        return {}, None
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise ValidationError("Request body must be valid JSON.") from e
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload, None


def _handler_dependency(kind: ResourceKind) -> Callable[..., ResourceHandler]:
    def get_handler(
        store: DocumentStore = Depends(get_document_store),
        media: MediaStorage = Depends(get_media_storage),
    ) -> ResourceHandler:
        return ResourceHandler(kind, store, media)

    return get_handler


def build_resource_router(kind: ResourceKind) -> APIRouter:
    """Register create / list / update / delete routes for one kind."""
    router = APIRouter(tags=[kind.label])
    handler_dependency = _handler_dependency(kind)
    policy = kind.media.policy if kind.media is not None else None
    write_guard = [Depends(require_user)]
    create_guard = [] if kind.public_create else write_guard

    async def create_resource(
        request: Request, handler: ResourceHandler = Depends(handler_dependency)
    ):
        fields, upload = await read_payload(request, policy)
        result = await run_upstream(request, handler.create, fields, upload)
        return {"message": f"{kind.label} added successfully", **result}

    async def list_resources(
        request: Request, handler: ResourceHandler = Depends(handler_dependency)
    ):
        return await run_upstream(request, handler.list)

    async def update_resource(
        doc_id: str,
        request: Request,
        handler: ResourceHandler = Depends(handler_dependency),
    ):
        fields, upload = await read_payload(request, policy)
        result = await run_upstream(request, handler.update, doc_id, fields, upload)
        return {"message": f"{kind.label} updated successfully", **result}

    async def delete_resource(
        doc_id: str,
        request: Request,
        handler: ResourceHandler = Depends(handler_dependency),
    ):
        result = await run_upstream(request, handler.delete, doc_id)
        return {"message": f"{kind.label} deleted successfully", **result}

    item_path = kind.path + "/{doc_id}"
    router.add_api_route(
        kind.path,
        create_resource,
        methods=["POST"],
        status_code=201,
        dependencies=create_guard,
        name=f"create_{kind.name}",
    )
    router.add_api_route(
        kind.path, list_resources, methods=["GET"], name=f"list_{kind.name}"
    )
    router.add_api_route(
        item_path,
        update_resource,
        methods=["PUT"],
        dependencies=write_guard,
        name=f"update_{kind.name}",
    )
    router.add_api_route(
        item_path,
        delete_resource,
        methods=["DELETE"],
        dependencies=write_guard,
        name=f"delete_{kind.name}",
    )

    # Paths the older front end still calls.
    legacy = kind.legacy_paths
    if "create" in legacy:
        router.add_api_route(
            legacy["create"],
            create_resource,
            methods=["POST"],
            status_code=201,
            dependencies=create_guard,
            include_in_schema=False,
        )
    if "list" in legacy:
        router.add_api_route(
            legacy["list"], list_resources, methods=["GET"], include_in_schema=False
        )
    if "delete" in legacy:
        router.add_api_route(
            legacy["delete"] + "/{doc_id}",
            delete_resource,
            methods=["DELETE"],
            dependencies=write_guard,
            include_in_schema=False,
        )
    return router


def build_router(kinds: Iterable[ResourceKind] = ALL_KINDS) -> APIRouter:
    router = APIRouter()
    router.include_router(auth_router)
    for kind in kinds:
        router.include_router(build_resource_router(kind))
    return router
