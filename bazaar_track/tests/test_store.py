import unittest

from bson import ObjectId

from bazaar_track.store import (
    InMemoryDocumentStore,
    MongoDocumentStore,
    SqlDocumentStore,
    _from_mongo,
    _NoMatch,
    _to_mongo_filters,
    apply_window,
    matches,
)


class MatchesTests(unittest.TestCase):
    doc = {"_id": "a1", "name": "Rahim Uddin", "email": "rahim@bazaar.test", "price": 30, "role": "user"}

    def test_equality_and_missing_fields(self):
        self.assertTrue(matches(self.doc, {"role": "user"}))
        self.assertFalse(matches(self.doc, {"role": "admin"}))
        self.assertFalse(matches(self.doc, {"status": "approved"}))
        self.assertTrue(matches(self.doc, None))

    def test_operators(self):
        self.assertTrue(matches(self.doc, {"price": {"$gte": 30, "$lte": 40}}))
        self.assertFalse(matches(self.doc, {"price": {"$gt": 30}}))
        self.assertTrue(matches(self.doc, {"role": {"$in": ["user", "vendor"]}}))
        self.assertTrue(matches(self.doc, {"role": {"$ne": "admin"}}))
        self.assertTrue(matches(self.doc, {"name": {"$regex": "rahim", "$options": "i"}}))
        self.assertFalse(matches(self.doc, {"name": {"$regex": "rahim"}}))

    def test_or(self):
        pattern = {"$regex": "bazaar", "$options": "i"}
        self.assertTrue(matches(self.doc, {"$or": [{"name": pattern}, {"email": pattern}]}))
        self.assertFalse(matches(self.doc, {"$or": [{"role": "admin"}, {"price": 1}]}))

    def test_mismatched_types_do_not_match(self):
        self.assertFalse(matches(self.doc, {"price": {"$gte": "30"}}))

    def test_unknown_operator_raises(self):
        with self.assertRaises(ValueError):
            matches(self.doc, {"price": {"$near": 1}})

    def test_apply_window_sorts_missing_values_first(self):
        docs = [{"n": 2}, {"n": None}, {"n": 1}]
        self.assertEqual([d["n"] for d in apply_window(docs, [("n", 1)])], [None, 1, 2])
        self.assertEqual([d["n"] for d in apply_window(docs, [("n", -1)], limit=2)], [2, 1])
        self.assertEqual([d["n"] for d in apply_window(docs, [("n", 1)], skip=1)], [1, 2])


class MongoFilterTests(unittest.TestCase):
    oid = "0123456789abcdef01234567"

    def test_string_id_becomes_object_id(self):
        query = _to_mongo_filters({"_id": self.oid, "email": "a@b.test"})
        self.assertEqual(query, {"_id": ObjectId(self.oid), "email": "a@b.test"})

    def test_malformed_id_cannot_match(self):
        for value in ("does-not-exist", None, 42):
            with self.subTest(value=value):
                with self.assertRaises(_NoMatch):
                    _to_mongo_filters({"_id": value, "email": "a@b.test"})

    def test_id_list_skips_malformed_ids(self):
        query = _to_mongo_filters({"_id": {"$in": [self.oid, "gone", ObjectId(self.oid)]}})
        self.assertEqual(query, {"_id": {"$in": [ObjectId(self.oid), ObjectId(self.oid)]}})

    def test_or_branches_are_converted(self):
        query = _to_mongo_filters({"$or": [{"_id": self.oid}, {"email": "a@b.test"}]})
        self.assertEqual(query, {"$or": [{"_id": ObjectId(self.oid)}, {"email": "a@b.test"}]})

    def test_empty_filters(self):
        self.assertEqual(_to_mongo_filters(None), {})
        self.assertEqual(_to_mongo_filters({}), {})

    def test_filters_are_not_mutated(self):
        filters = {"_id": self.oid}
        _to_mongo_filters(filters)
        self.assertEqual(filters, {"_id": self.oid})

    def test_from_mongo_stringifies_id(self):
        self.assertIsNone(_from_mongo(None))
        self.assertEqual(_from_mongo({"_id": ObjectId(self.oid), "a": 1}), {"_id": self.oid, "a": 1})

    def test_malformed_id_short_circuits_store_calls(self):
        # MongoClient connects lazily, so these never reach a server.
        store = MongoDocumentStore("mongodb://localhost:27017", "bazaarTrackTest")
        self.addCleanup(store.close)
        filters = {"_id": "does-not-exist", "email": "a@b.test"}
        self.assertIsNone(store.find_one("watchList", filters))
        self.assertEqual(store.find("watchList", filters), [])
        self.assertEqual(store.count("watchList", filters), 0)
        self.assertEqual(store.update_one("watchList", filters, {"x": 1}), 0)
        self.assertEqual(store.delete_one("watchList", filters), 0)


class DocumentStoreContract:
    """Behaviour every DocumentStore implementation must share."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()

    def test_insert_and_find_one_by_id(self):
        doc_id = self.store.insert_one("products", {"itemName": "Potato", "pricePerUnit": 25})
        found = self.store.find_one("products", {"_id": doc_id})
        self.assertEqual(found["_id"], doc_id)
        self.assertEqual(found["itemName"], "Potato")

    def test_find_one_missing_returns_none(self):
        self.assertIsNone(self.store.find_one("products", {"_id": "does-not-exist"}))

    def test_collections_are_isolated(self):
        doc_id = self.store.insert_one("products", {"itemName": "Rice"})
        self.assertIsNone(self.store.find_one("reviews", {"_id": doc_id}))
        self.assertEqual(self.store.count("reviews"), 0)

    def test_find_filters_sorts_and_windows(self):
        for name, price in (("Garlic", 180), ("Onion", 45), ("Ginger", 220), ("Chili", 120)):
            self.store.insert_one("products", {"itemName": name, "pricePerUnit": price, "status": "approved"})
        self.store.insert_one("products", {"itemName": "Lentil", "pricePerUnit": 10, "status": "pending"})

        approved = self.store.find("products", {"status": "approved"}, sort=[("pricePerUnit", 1)])
        self.assertEqual([d["itemName"] for d in approved], ["Onion", "Chili", "Garlic", "Ginger"])

        page = self.store.find(
            "products", {"status": "approved"}, sort=[("pricePerUnit", -1)], skip=1, limit=2
        )
        self.assertEqual([d["itemName"] for d in page], ["Garlic", "Chili"])
        self.assertEqual(self.store.count("products", {"status": "approved"}), 4)
        self.assertEqual(self.store.count("products"), 5)

    def test_find_by_id_list(self):
        ids = [self.store.insert_one("products", {"n": i}) for i in range(3)]
        found = self.store.find("products", {"_id": {"$in": ids[:2]}}, sort=[("n", 1)])
        self.assertEqual([d["n"] for d in found], [0, 1])

    def test_update_one_sets_fields(self):
        doc_id = self.store.insert_one("products", {"itemName": "Egg", "status": "pending"})
        self.assertEqual(self.store.update_one("products", {"_id": doc_id}, {"status": "approved"}), 1)
        updated = self.store.find_one("products", {"_id": doc_id})
        self.assertEqual(updated["status"], "approved")
        self.assertEqual(updated["itemName"], "Egg")

    def test_update_one_without_match(self):
        self.assertEqual(self.store.update_one("products", {"_id": "missing"}, {"a": 1}), 0)

    def test_delete_one(self):
        doc_id = self.store.insert_one("watchList", {"email": "a@b.test"})
        self.assertEqual(self.store.delete_one("watchList", {"_id": doc_id}), 1)
        self.assertEqual(self.store.delete_one("watchList", {"_id": doc_id}), 0)
        self.assertIsNone(self.store.find_one("watchList", {"_id": doc_id}))

    def test_returned_documents_are_copies(self):
        doc_id = self.store.insert_one("products", {"prices": [{"price": 1}]})
        found = self.store.find_one("products", {"_id": doc_id})
        found["prices"].append({"price": 2})
        self.assertEqual(len(self.store.find_one("products", {"_id": doc_id})["prices"]), 1)

    def test_ping(self):
        self.assertTrue(self.store.ping())


class InMemoryDocumentStoreTests(DocumentStoreContract, unittest.TestCase):
    def make_store(self):
        return InMemoryDocumentStore()

    def test_reset(self):
        self.store.insert_one("users", {"email": "a@b.test"})
        self.store.reset()
        self.assertEqual(self.store.count("users"), 0)


class SqlDocumentStoreTests(DocumentStoreContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL store.
    """

    def make_store(self):
        return SqlDocumentStore("sqlite+pysqlite:///:memory:")

    def tearDown(self):
        self.store.close()


if __name__ == "__main__":
    unittest.main()
