"""
Identity provider abstraction: Firebase Auth and an in-memory test implementation.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from wedding_api.errors import (
    AuthError,
    UpstreamError,
    UpstreamUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts"
MIN_PASSWORD_LENGTH = 6

# Identity Toolkit error codes that are the caller's fault on sign-up.
SIGN_UP_ERRORS = {
    "EMAIL_EXISTS": "Email is already in use.",
    "INVALID_EMAIL": "Invalid email format.",
    "WEAK_PASSWORD": "Password is too weak.",
    "MISSING_PASSWORD": "Email and password are required.",
    "MISSING_EMAIL": "Email and password are required.",
}
SIGN_IN_ERRORS = {
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
    "INVALID_EMAIL",
    "USER_DISABLED",
}


@dataclass(frozen=True)
class AuthSession:
    uid: str
    token: str


@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None


class IdentityProvider(Protocol):
    """Operations the API needs from the identity provider."""

    def sign_up(self, email: str, password: str) -> AuthSession:
        ...

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    def verify_token(self, token: str) -> Identity:
        ...


def require_credentials(email: Optional[str], password: Optional[str]) -> tuple[str, str]:
    email = (email or "").strip()
    if not email or not password:
        raise ValidationError("Email and password are required.")
    return email, password


@dataclass
class InMemoryIdentityProvider:
    """Test double that keeps accounts and issued tokens in memory."""

    users: Dict[str, tuple[str, str, str]] = field(default_factory=dict)
    tokens: Dict[str, Identity] = field(default_factory=dict)

    @staticmethod
    def _hash(password: str, salt: str) -> str:
        return hashlib.sha256(f"{salt}:{password}".encode("utf-8")).hexdigest()

    def _issue(self, uid: str, email: str) -> AuthSession:
        token = secrets.token_urlsafe(32)
        self.tokens[token] = Identity(uid=uid, email=email)
        return AuthSession(uid=uid, token=token)

    def sign_up(self, email: str, password: str) -> AuthSession:
        email, password = require_credentials(email, password)
        if "@" not in email:
            raise ValidationError(SIGN_UP_ERRORS["INVALID_EMAIL"])
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(SIGN_UP_ERRORS["WEAK_PASSWORD"])
        key = email.lower()
        if key in self.users:
            raise ValidationError(SIGN_UP_ERRORS["EMAIL_EXISTS"])
        uid = uuid.uuid4().hex
        salt = secrets.token_hex(8)
        self.users[key] = (uid, salt, self._hash(password, salt))
        return self._issue(uid, email)

    def sign_in(self, email: str, password: str) -> AuthSession:
        email, password = require_credentials(email, password)
        record = self.users.get(email.lower())
        if record is None:
            raise AuthError("Authentication failed")
        uid, salt, digest = record
        if not secrets.compare_digest(digest, self._hash(password, salt)):
            raise AuthError("Authentication failed")
        return self._issue(uid, email)

    def verify_token(self, token: str) -> Identity:
        identity = self.tokens.get(token)
        if identity is None:
            raise AuthError("Invalid or expired token")
        return identity


class FirebaseIdentityProvider:
    """
    Firebase Auth implementation.

    Password sign-up and sign-in go through the Identity Toolkit REST API
    (the Admin SDK cannot check passwords); ID tokens are verified with the
    Admin SDK against an explicitly passed ``firebase_admin.App``.
    """

    def __init__(
        self,
        app,
        api_key: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("FIREBASE_API_KEY is required for FirebaseIdentityProvider")
        self.app = app
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _call(self, method: str, payload: dict) -> dict:
        url = f"{IDENTITY_TOOLKIT_URL}:{method}"
        try:
            response = self.session.post(
                url,
                params={"key": self.api_key},
                json={**payload, "returnSecureToken": True},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.error("Identity provider timed out on %s: %s", method, e)
            raise UpstreamUnavailableError("Identity provider unavailable", detail=str(e)) from e
        except requests.RequestException as e:
            logger.exception("Identity provider request failed on %s", method)
            raise UpstreamError("Identity provider request failed", detail=str(e)) from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.ok:
            return body
        # Messages look like "WEAK_PASSWORD : Password should be at least 6 characters"
        message = (body.get("error") or {}).get("message", "") or response.reason or ""
        code = message.split(":", 1)[0].strip()
        raise _IdentityToolkitError(code, message, response.status_code)

    def sign_up(self, email: str, password: str) -> AuthSession:
        email, password = require_credentials(email, password)
        try:
            body = self._call("signUp", {"email": email, "password": password})
        except _IdentityToolkitError as e:
            logger.error("Sign-up error: %s", e.message)
            if e.code in SIGN_UP_ERRORS:
                raise ValidationError(SIGN_UP_ERRORS[e.code]) from e
            raise UpstreamError("User registration failed", detail=e.message) from e
        return AuthSession(uid=body["localId"], token=body["idToken"])

    def sign_in(self, email: str, password: str) -> AuthSession:
        email, password = require_credentials(email, password)
        try:
            body = self._call(
                "signInWithPassword", {"email": email, "password": password}
            )
        except _IdentityToolkitError as e:
            logger.error("Login error: %s", e.message)
            if e.code in SIGN_IN_ERRORS:
                raise AuthError("Authentication failed") from e
            raise UpstreamError("Authentication failed", detail=e.message) from e
        return AuthSession(uid=body["localId"], token=body["idToken"])

    def verify_token(self, token: str) -> Identity:
        try:
            decoded = firebase_auth.verify_id_token(token, app=self.app)
        except firebase_auth.CertificateFetchError as e:
            logger.error("Could not fetch token signing certificates: %s", e)
            raise UpstreamUnavailableError(
                "Identity provider unavailable", detail=str(e)
            ) from e
        except (
            ValueError,
            firebase_auth.InvalidIdTokenError,
            firebase_auth.UserDisabledError,
        ) as e:
            logger.info("Token verification error: %s", e)
            raise AuthError("Invalid or expired token") from e
        except firebase_exceptions.FirebaseError as e:
            logger.exception("Token verification failed")
            raise UpstreamError("Token verification failed", detail=str(e)) from e
        return Identity(uid=decoded["uid"], email=decoded.get("email"))


class _IdentityToolkitError(Exception):
    def __init__(self, code: str, message: str, status_code: int):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
