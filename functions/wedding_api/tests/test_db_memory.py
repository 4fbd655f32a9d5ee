import unittest
from concurrent.futures import ThreadPoolExecutor

from wedding_api.db import InMemoryDocumentStore


class InMemoryDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()

    def test_list_while_adding_from_other_threads(self):
        def add_many(worker: int) -> None:
            for i in range(200):
                self.store.add("guests", {"guestName": f"{worker}-{i}"})

        def list_many() -> None:
            for _ in range(200):
                self.store.list("guests")
                self.store.get_many("guests", ["missing"])

        with ThreadPoolExecutor(max_workers=8) as pool:
            futures = [pool.submit(add_many, worker) for worker in range(4)]
            futures += [pool.submit(list_many) for _ in range(4)]
            for future in futures:
                future.result()

        self.assertEqual(len(self.store.list("guests")), 800)

    def test_reset_clears_every_collection(self):
        self.store.add("guests", {"guestName": "Tono"})
        self.store.add("gifts", {"label": "Toaster"})
        self.store.reset()
        self.assertEqual(self.store.list("guests"), [])
        self.assertEqual(self.store.list("gifts"), [])


if __name__ == "__main__":
    unittest.main()
