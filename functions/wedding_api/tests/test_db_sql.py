import unittest

from wedding_api.db import SqlDocumentStore
from wedding_api.errors import NotFoundError


class SqlDocumentStoreTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL store.
    """

    def setUp(self):
        self.db = SqlDocumentStore("sqlite+pysqlite:///:memory:")

    def test_add_and_get(self):
        doc_id = self.db.add("invitations", {"name": "Alice", "status": "pending"})
        doc = self.db.get("invitations", doc_id)
        self.assertEqual(doc["id"], doc_id)
        self.assertEqual(doc["name"], "Alice")
        self.assertIsNotNone(doc["createdAt"].tzinfo)
        self.assertNotIn("updatedAt", doc)

    def test_server_fields_are_not_taken_from_callers(self):
        doc_id = self.db.add("invitations", {"id": "mine", "createdAt": "yesterday"})
        self.assertNotEqual(doc_id, "mine")
        self.assertNotEqual(self.db.get("invitations", doc_id)["createdAt"], "yesterday")

    def test_list_orders_by_insertion(self):
        ids = [self.db.add("guests", {"guestName": str(i)}) for i in range(3)]
        self.db.add("other", {"guestName": "elsewhere"})
        self.assertEqual([d["id"] for d in self.db.list("guests")], ids)
        self.assertEqual(
            [d["id"] for d in self.db.list("guests", newest_first=True)],
            list(reversed(ids)),
        )

    def test_update_merges_fields(self):
        doc_id = self.db.add("invitations", {"name": "Alice", "status": "pending"})
        self.db.update("invitations", doc_id, {"status": "declined"})
        doc = self.db.get("invitations", doc_id)
        self.assertEqual(doc["name"], "Alice")
        self.assertEqual(doc["status"], "declined")
        self.assertIsNotNone(doc["updatedAt"])

    def test_update_and_delete_missing_documents(self):
        with self.assertRaises(NotFoundError):
            self.db.update("invitations", "missing", {"status": "declined"})
        with self.assertRaises(NotFoundError):
            self.db.delete("invitations", "missing")

    def test_delete(self):
        doc_id = self.db.add("invitations", {"name": "Alice"})
        self.db.delete("invitations", doc_id)
        self.assertIsNone(self.db.get("invitations", doc_id))
        self.assertEqual(self.db.list("invitations"), [])

    def test_get_many_ignores_unknown_ids(self):
        first = self.db.add("bankAccounts", {"bankName": "A"})
        self.db.add("bankAccounts", {"bankName": "B"})
        found = self.db.get_many("bankAccounts", [first, "missing"])
        self.assertEqual(list(found), [first])
        self.assertEqual(self.db.get_many("bankAccounts", []), {})

    def test_documents_are_scoped_to_their_collection(self):
        doc_id = self.db.add("bankAccounts", {"bankName": "A"})
        self.assertIsNone(self.db.get("giftItems", doc_id))


if __name__ == "__main__":
    unittest.main()
