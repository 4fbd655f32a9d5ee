"""
Pydantic schemas for the fixed-shape endpoints.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class CredentialsRequest(BaseModel):
    # Optional so a missing field is reported as a 400 by the auth adapter.
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=4096)


class SignUpResponse(BaseModel):
    message: str
    token: str


class TokenResponse(BaseModel):
    token: str


class HealthResponse(BaseModel):
    status: Literal["ok"]
