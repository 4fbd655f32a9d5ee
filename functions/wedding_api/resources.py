"""
Generic validated CRUD over the document store.

A ``ResourceKind`` declares one entity type (its collection, required and
mutable fields, optional media field and read-time join); a
``ResourceHandler`` applies the same create / list / update / delete rules to
any kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from wedding_api.db import DocumentStore
from wedding_api.errors import UpstreamError, ValidationError, NotFoundError
from wedding_api.media import UploadPolicy
from wedding_api.storage import MediaStorage

logger = logging.getLogger(__name__)

ASSET_KEY = "assetKey"


@dataclass(frozen=True)
class MediaField:
    """The file a kind carries: where its URL is stored and what is accepted."""

    url_field: str
    policy: UploadPolicy


@dataclass(frozen=True)
class JoinSpec:
    """
    Resolve ``ref_field`` against ``collection`` at read time and embed the
    referenced ``fields`` under ``as_field``. A dangling reference embeds null.
    """

    ref_field: str
    collection: str
    fields: tuple[str, ...]
    as_field: str


@dataclass(frozen=True)
class ResourceKind:
    name: str
    label: str
    collection: str
    path: str
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    update_required: tuple[str, ...] = ()
    update_optional: tuple[str, ...] = ()
    choices: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    newest_first: bool = False
    public_create: bool = False
    media: Optional[MediaField] = None
    join: Optional[JoinSpec] = None
    legacy_paths: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FileUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _coerce(name: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValidationError(f"Field '{name}' must be a string.")
    return str(value).strip()


def _describe(names: list[str]) -> str:
    return ", ".join(names)


class ResourceHandler:
    """Applies one kind's validation rules around document store calls."""

    def __init__(
        self,
        kind: ResourceKind,
        store: DocumentStore,
        media: Optional[MediaStorage] = None,
    ):
        self.kind = kind
        self.store = store
        self.media = media

    # Validation

    def _check_choices(self, values: dict) -> None:
        for name, allowed in self.kind.choices.items():
            value = values.get(name)
            if value is not None and value not in allowed:
                raise ValidationError(
                    f"Invalid {name} '{value}'. Allowed: {_describe(list(allowed))}."
                )

    def _collect(
        self, payload: Mapping[str, Any], required: tuple[str, ...], optional: tuple[str, ...]
    ) -> dict:
        values: dict = {}
        missing: list[str] = []
        for name in required:
            value = _coerce(name, payload.get(name))
            if not value:
                missing.append(name)
            else:
                values[name] = value
        for name in optional:
            if name not in payload:
                continue
            value = _coerce(name, payload.get(name))
            if value:
                values[name] = value
            elif name in self.kind.required:
                # Fields required at create time may be changed but not cleared.
                missing.append(name)
            else:
                values[name] = None
        if missing:
            raise ValidationError(f"Missing required fields: {_describe(missing)}.")
        self._check_choices(values)
        return values

    def validate_create(self, payload: Mapping[str, Any]) -> dict:
        return self._collect(payload, self.kind.required, self.kind.optional)

    def validate_update(self, payload: Mapping[str, Any]) -> dict:
        return self._collect(
            payload, self.kind.update_required, self.kind.update_optional
        )

    def _check_upload(self, upload: Optional[FileUpload]) -> None:
        if upload is None:
            return
        if self.kind.media is None:
            raise ValidationError(f"{self.kind.label} does not accept file uploads.")
        self.kind.media.policy.check(upload.filename, upload.content_type, upload.size)

    # Media helpers

    def _upload(self, upload: FileUpload):
        if self.media is None:
            raise UpstreamError("No asset host configured")
        return self.media.upload(
            upload.data,
            upload.content_type,
            prefix=self.kind.collection,
            filename=upload.filename,
        )

    def _discard_asset(self, key: Optional[str]) -> None:
        """Remove an asset whose document is already gone or replaced."""
        if not key or self.media is None:
            return
        try:
            self.media.delete(key)
        except UpstreamError as e:
            logger.warning(
                "Leaving orphaned asset %s for %s: %s", key, self.kind.name, e.message
            )

    # Operations

    def create(self, payload: Mapping[str, Any], upload: Optional[FileUpload] = None) -> dict:
        values = self.validate_create(payload)
        if self.kind.media is not None and upload is None:
            raise ValidationError("No file uploaded.")
        self._check_upload(upload)

        if upload is None:
            doc_id = self.store.add(self.kind.collection, values)
            logger.info("Added %s %s", self.kind.name, doc_id)
            return {"id": doc_id}

        asset = self._upload(upload)
        values[self.kind.media.url_field] = asset.url
        values[ASSET_KEY] = asset.key
        try:
            doc_id = self.store.add(self.kind.collection, values)
        except UpstreamError:
            self._discard_asset(asset.key)
            raise
        logger.info("Added %s %s", self.kind.name, doc_id)
        return {"id": doc_id, self.kind.media.url_field: asset.url}

    def list(self) -> list[dict]:
        docs = [
            {k: v for k, v in doc.items() if k != ASSET_KEY}
            for doc in self.store.list(
                self.kind.collection, newest_first=self.kind.newest_first
            )
        ]
        if self.kind.join is not None:
            self._apply_join(docs)
        return docs

    def _apply_join(self, docs: list[dict]) -> None:
        join = self.kind.join
        refs = {doc[join.ref_field] for doc in docs if doc.get(join.ref_field)}
        targets = self.store.get_many(join.collection, refs) if refs else {}
        for doc in docs:
            target = targets.get(doc.get(join.ref_field))
            if target is None:
                doc[join.as_field] = None
            else:
                doc[join.as_field] = {
                    "id": target["id"],
                    **{name: target.get(name) for name in join.fields},
                }

    def update(
        self, doc_id: str, payload: Mapping[str, Any], upload: Optional[FileUpload] = None
    ) -> dict:
        values = self.validate_update(payload)
        if not values and upload is None:
            raise ValidationError("No updatable fields supplied.")
        self._check_upload(upload)

        if upload is None:
            self.store.update(self.kind.collection, doc_id, values)
            logger.info("Updated %s %s", self.kind.name, doc_id)
            return {"id": doc_id}

        existing = self.store.get(self.kind.collection, doc_id)
        if existing is None:
            raise NotFoundError(f"{self.kind.label} {doc_id} not found")
        asset = self._upload(upload)
        values[self.kind.media.url_field] = asset.url
        values[ASSET_KEY] = asset.key
        try:
            self.store.update(self.kind.collection, doc_id, values)
        except (UpstreamError, NotFoundError):
            self._discard_asset(asset.key)
            raise
        self._discard_asset(existing.get(ASSET_KEY))
        logger.info("Updated %s %s with new file", self.kind.name, doc_id)
        return {"id": doc_id, self.kind.media.url_field: asset.url}

    def delete(self, doc_id: str) -> dict:
        if self.kind.media is None:
            self.store.delete(self.kind.collection, doc_id)
            logger.info("Deleted %s %s", self.kind.name, doc_id)
            return {"id": doc_id}

        existing = self.store.get(self.kind.collection, doc_id)
        if existing is None:
            raise NotFoundError(f"{self.kind.label} {doc_id} not found")
        self.store.delete(self.kind.collection, doc_id)
        self._discard_asset(existing.get(ASSET_KEY))
        logger.info("Deleted %s %s and its file", self.kind.name, doc_id)
        return {"id": doc_id}
