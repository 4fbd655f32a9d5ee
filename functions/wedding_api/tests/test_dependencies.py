import unittest
from unittest.mock import patch

from wedding_api.auth import InMemoryIdentityProvider
from wedding_api.config import Settings
from wedding_api.db import InMemoryDocumentStore, SqlDocumentStore
from wedding_api.dependencies import (
    _firebase_credential,
    build_document_store,
    build_identity_provider,
    build_media_storage,
)
from wedding_api.storage import InMemoryMediaStorage


class BuildBackendsTests(unittest.TestCase):
    def test_memory_backends(self):
        settings = Settings(_env_file=None, wedding_use_in_memory_backends=True)
        self.assertIsInstance(build_document_store(settings), InMemoryDocumentStore)
        self.assertIsInstance(build_media_storage(settings), InMemoryMediaStorage)
        self.assertIsInstance(build_identity_provider(settings), InMemoryIdentityProvider)

    def test_sql_store(self):
        settings = Settings(
            _env_file=None,
            document_store="sql",
            database_url="sqlite+pysqlite:///:memory:",
            wedding_use_in_memory_backends=False,
        )
        self.assertIsInstance(build_document_store(settings), SqlDocumentStore)

    def test_sql_store_requires_url(self):
        settings = Settings(
            _env_file=None,
            document_store="sql",
            database_url=None,
            wedding_use_in_memory_backends=False,
        )
        with self.assertRaises(ValueError):
            build_document_store(settings)

    def test_media_storage_requires_bucket(self):
        settings = Settings(
            _env_file=None,
            document_store="firestore",
            asset_bucket=None,
            wedding_use_in_memory_backends=False,
        )
        with self.assertRaises(ValueError):
            build_media_storage(settings)

    @patch("wedding_api.dependencies.credentials.Certificate")
    def test_service_account_from_env_restores_newlines(self, mock_certificate):
        settings = Settings(
            _env_file=None,
            firebase_credentials=None,
            firebase_project_id="wedding",
            firebase_client_email="svc@wedding.iam.gserviceaccount.com",
            firebase_private_key="-----BEGIN KEY-----\\nabc\\n-----END KEY-----\\n",
        )
        _firebase_credential(settings)
        info = mock_certificate.call_args.args[0]
        self.assertEqual(info["private_key"], "-----BEGIN KEY-----\nabc\n-----END KEY-----\n")
        self.assertEqual(info["project_id"], "wedding")

    def test_cors_origins_are_split(self):
        settings = Settings(_env_file=None, cors_origins="http://a.test, http://b.test")
        self.assertEqual(settings.cors_origin_list, ["http://a.test", "http://b.test"])


if __name__ == "__main__":
    unittest.main()
