import unittest
from unittest.mock import MagicMock, patch

import requests
from firebase_admin import auth as firebase_auth

from wedding_api.auth import FirebaseIdentityProvider, InMemoryIdentityProvider
from wedding_api.errors import (
    AuthError,
    UpstreamError,
    UpstreamUnavailableError,
    ValidationError,
)


def make_response(status_code, body):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = "Bad Request" if status_code == 400 else "OK"
    response.json.return_value = body
    return response


class InMemoryIdentityProviderTests(unittest.TestCase):
    def setUp(self):
        self.identity = InMemoryIdentityProvider()

    def test_issued_tokens_verify(self):
        session = self.identity.sign_up("a@example.com", "secret123")
        self.assertEqual(self.identity.verify_token(session.token).uid, session.uid)

    def test_sign_in_is_case_insensitive_on_email(self):
        session = self.identity.sign_up("A@Example.com", "secret123")
        self.assertEqual(self.identity.sign_in("a@example.com", "secret123").uid, session.uid)

    def test_weak_password_and_bad_email(self):
        with self.assertRaises(ValidationError):
            self.identity.sign_up("a@example.com", "123")
        with self.assertRaises(ValidationError):
            self.identity.sign_up("not-an-email", "secret123")

    def test_unknown_account(self):
        with self.assertRaises(AuthError):
            self.identity.sign_in("ghost@example.com", "secret123")


class FirebaseIdentityProviderTests(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.app = MagicMock()
        self.identity = FirebaseIdentityProvider(
            self.app, api_key="key", timeout=2.0, session=self.session
        )

    def test_requires_api_key(self):
        with self.assertRaises(ValueError):
            FirebaseIdentityProvider(self.app, api_key="")

    def test_sign_up_returns_id_token(self):
        self.session.post.return_value = make_response(
            200, {"idToken": "tok", "localId": "uid-1"}
        )
        session = self.identity.sign_up("a@example.com", "secret123")

        self.assertEqual(session.token, "tok")
        self.assertEqual(session.uid, "uid-1")
        args, kwargs = self.session.post.call_args
        self.assertTrue(args[0].endswith("accounts:signUp"))
        self.assertEqual(kwargs["params"], {"key": "key"})
        self.assertEqual(kwargs["timeout"], 2.0)
        self.assertTrue(kwargs["json"]["returnSecureToken"])

    def test_sign_up_maps_provider_errors(self):
        self.session.post.return_value = make_response(
            400,
            {"error": {"message": "WEAK_PASSWORD : Password should be at least 6 characters"}},
        )
        with self.assertRaises(ValidationError) as ctx:
            self.identity.sign_up("a@example.com", "123456")
        self.assertEqual(ctx.exception.message, "Password is too weak.")

    def test_sign_up_unexpected_error_is_upstream(self):
        self.session.post.return_value = make_response(
            400, {"error": {"message": "OPERATION_NOT_ALLOWED"}}
        )
        with self.assertRaises(UpstreamError):
            self.identity.sign_up("a@example.com", "secret123")

    def test_sign_in_checks_password(self):
        self.session.post.return_value = make_response(
            400, {"error": {"message": "INVALID_LOGIN_CREDENTIALS"}}
        )
        with self.assertRaises(AuthError):
            self.identity.sign_in("a@example.com", "wrong")
        self.assertTrue(
            self.session.post.call_args.args[0].endswith("accounts:signInWithPassword")
        )

    def test_sign_in_without_password_never_calls_provider(self):
        with self.assertRaises(ValidationError):
            self.identity.sign_in("a@example.com", None)
        self.session.post.assert_not_called()

    def test_timeout_is_unavailable(self):
        self.session.post.side_effect = requests.Timeout("slow")
        with self.assertRaises(UpstreamUnavailableError):
            self.identity.sign_in("a@example.com", "secret123")

    @patch("wedding_api.auth.firebase_auth.verify_id_token")
    def test_verify_token(self, mock_verify):
        mock_verify.return_value = {"uid": "uid-1", "email": "a@example.com"}
        identity = self.identity.verify_token("tok")
        self.assertEqual(identity.uid, "uid-1")
        mock_verify.assert_called_once_with("tok", app=self.app)

    @patch("wedding_api.auth.firebase_auth.verify_id_token")
    def test_verify_invalid_token(self, mock_verify):
        mock_verify.side_effect = firebase_auth.InvalidIdTokenError("bad token")
        with self.assertRaises(AuthError):
            self.identity.verify_token("tok")


if __name__ == "__main__":
    unittest.main()
