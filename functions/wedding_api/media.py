"""
Declared upload policies for file-carrying resources.

The size limit is checked as soon as the request body is parsed, before the
upload is read into memory. Every check runs before the asset host is contacted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from wedding_api.errors import ValidationError

MB = 1024 * 1024


@dataclass(frozen=True)
class UploadPolicy:
    label: str
    content_types: frozenset[str]
    max_bytes: int
    extensions: Optional[frozenset[str]] = None

    def check_size(self, size: int) -> None:
        if size > self.max_bytes:
            raise ValidationError(
                f"File too large: {self.label} uploads are limited to "
                f"{self.max_bytes // MB} MB."
            )

    def check(self, filename: str, content_type: str, size: int) -> None:
        """Raise ValidationError if the upload is outside this policy."""
        if size <= 0:
            raise ValidationError("Uploaded file is empty.")
        self.check_size(size)
        normalized = (content_type or "").split(";", 1)[0].strip().lower()
        if normalized not in self.content_types:
            raise ValidationError(
                f"Unsupported {self.label} type '{normalized or 'unknown'}'. "
                f"Allowed: {', '.join(sorted(self.content_types))}."
            )
        if self.extensions is not None:
            extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
            if extension not in self.extensions:
                raise ValidationError(
                    f"Unsupported {self.label} extension '.{extension}'. "
                    f"Allowed: {', '.join('.' + e for e in sorted(self.extensions))}."
                )


IMAGE_POLICY = UploadPolicy(
    label="image",
    content_types=frozenset({"image/png", "image/jpeg", "image/jpg"}),
    extensions=frozenset({"png", "jpg", "jpeg"}),
    max_bytes=10 * MB,
)

AUDIO_POLICY = UploadPolicy(
    label="audio",
    content_types=frozenset(
        {"audio/mpeg", "audio/mp3", "audio/wav", "audio/x-wav", "audio/wave"}
    ),
    max_bytes=50 * MB,
)
