import sqlite3
import tempfile
import unittest
from pathlib import Path

from campuskb.db_migrations import SqliteMigration, applied_versions, apply_sqlite_migrations
from campuskb.storage_provider import InMemoryKeyValueStore, SqliteKeyValueStore, conversation_key


class TestSqliteKeyValueStore(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self.tmp.name) / "nested" / "state.sqlite"
        self.store = SqliteKeyValueStore(self.db_path)

    def tearDown(self):
        self.store.close()
        self.tmp.cleanup()

    def test_get_set_remove(self):
        self.assertIsNone(self.store.get("user"))
        self.store.set("user", '{"email": "a"}')
        self.store.set("user", '{"email": "b"}')
        self.assertEqual(self.store.get("user"), '{"email": "b"}')
        self.store.remove("user")
        self.assertIsNone(self.store.get("user"))
        self.store.remove("user")

    def test_values_survive_reopen(self):
        self.store.set("documents", "[]")
        self.store.close()
        self.store = SqliteKeyValueStore(self.db_path)
        self.assertEqual(self.store.get("documents"), "[]")

    def test_closed_store_raises(self):
        self.store.close()
        with self.assertRaises(RuntimeError):
            self.store.get("x")


class TestMigrations(unittest.TestCase):
    def test_migrations_apply_once_in_version_order(self):
        calls = []
        migrations = [
            SqliteMigration(version=2, name="add_index", runner=lambda conn: calls.append(2)),
            SqliteMigration(
                version=1,
                name="create_table",
                statements=("CREATE TABLE t (id INTEGER PRIMARY KEY)",),
                runner=lambda conn: calls.append(1),
            ),
        ]
        conn = sqlite3.connect(":memory:")
        try:
            self.assertEqual(apply_sqlite_migrations(conn, component="demo", migrations=migrations), [1, 2])
            self.assertEqual(apply_sqlite_migrations(conn, component="demo", migrations=migrations), [])
            self.assertEqual(calls, [1, 2])
            self.assertEqual(applied_versions(conn, "demo"), {1, 2})
            self.assertEqual(applied_versions(conn, "other"), set())
        finally:
            conn.close()


class TestInMemoryKeyValueStore(unittest.TestCase):
    def test_basic_operations(self):
        store = InMemoryKeyValueStore({"a": "1"})
        store.set("b", "2")
        store.remove("a")
        self.assertEqual(store.keys(), ["b"])
        self.assertIsNone(store.get("a"))

    def test_conversation_key_is_normalized(self):
        self.assertEqual(conversation_key(" Student@UOL.edu.pk "), "query-history:student@uol.edu.pk")


if __name__ == "__main__":
    unittest.main()
