#!/usr/bin/env python3
"""
Test the database schema fix against a thoughts table created before likes,
ownership and revisions existed, and the JSON seed import.
"""

import json
import logging
import os
import sqlite3
import tempfile
import shutil

from app_config import Settings
from schema_migration import check_database_schema, fix_database_schema, import_thoughts_from_json
from startup import ensure_storage_ready
from thought_store import JsonFileThoughtStore, SqliteThoughtStore

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

OLD_THOUGHTS_TABLE = """
    CREATE TABLE thoughts (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT UNIQUE NOT NULL,
        message TEXT NOT NULL,
        tags JSON,
        hearts INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
"""


class TestSchemaMigration:

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "happy_thoughts.db")
        self.json_path = os.path.join(self.temp_dir, "thoughts.json")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _create_old_database(self):
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()
        cursor.execute(OLD_THOUGHTS_TABLE)
        cursor.execute("""
            INSERT INTO thoughts (id, message, tags, hearts, created_at)
            VALUES ('old-1', 'Old thought about pizza', '["food"]', 4, '2024-01-01T10:00:00.000000+00:00')
        """)
        cursor.execute("""
            INSERT INTO thoughts (id, message, tags, hearts, created_at)
            VALUES ('old-2', 'Old untagged thought', '[]', 0, '2024-01-02T15:30:00.000000+00:00')
        """)
        conn.commit()
        conn.close()
        logger.info("✅ Created test database with old schema and sample data")

    def _write_seed(self, records):
        with open(self.json_path, "w", encoding="utf-8") as f:
            json.dump(records, f)

    def test_missing_database(self):
        schema_info = check_database_schema(self.db_path)
        assert schema_info["exists"] is False

    def test_old_schema_is_fixed(self):
        logger.info(f"🧪 Testing schema fix with temporary database: {self.db_path}")
        self._create_old_database()

        schema_info = check_database_schema(self.db_path)
        assert schema_info["needs_migration"] is True
        assert set(schema_info["missing_columns"]) == {"likes", "owner", "revision"}
        assert schema_info["total_thoughts"] == 2
        assert schema_info["untagged_thoughts"] == 1

        result = fix_database_schema(self.db_path)
        assert result["success"] is True
        assert result["columns_added"] == 3

        assert check_database_schema(self.db_path)["needs_migration"] is False
        # A second run has nothing left to add
        assert fix_database_schema(self.db_path)["columns_added"] == 0

        store = SqliteThoughtStore(self.db_path)
        old = store.find_by_id("old-1")
        assert old.tags == ["food"]
        assert old.hearts == 4
        assert old.likes == []
        assert old.owner is None
        assert old.revision == 0
        assert [t.id for t in store.find_all(newest_first=True)] == ["old-2", "old-1"]
        logger.info("🎉 Old rows readable after migration")

    def test_fix_creates_fresh_database(self):
        result = fix_database_schema(os.path.join(self.temp_dir, "new", "fresh.db"))
        assert result["success"] is True
        assert result["columns_added"] == 0

    def test_import_seeds_empty_store_once(self):
        self._write_seed([
            {"_id": "seed-1", "message": "Seeded sunny morning", "hearts": 2,
             "createdAt": "2024-03-01T08:00:00Z"},
            {"_id": "seed-2", "message": "Seeded coding night", "hearts": 0, "tags": ["programming"],
             "createdAt": "2024-03-02T22:00:00Z"},
            {"_id": "broken", "hearts": 1},
        ])
        store = SqliteThoughtStore(self.db_path)

        assert import_thoughts_from_json(store, self.json_path) == 2
        assert store.count() == 2
        assert store.find_by_id("seed-1").tags == ["weather"]
        assert store.find_by_id("seed-1").hearts == 2
        assert store.find_by_id("seed-2").tags == ["programming"]

        # Non-empty stores are left alone
        assert import_thoughts_from_json(store, self.json_path) == 0
        assert store.count() == 2

    def test_import_skips_duplicate_ids(self):
        self._write_seed([
            {"_id": "a", "message": "First copy of a", "hearts": 1},
            {"_id": "a", "message": "Second copy of a", "hearts": 5},
            {"_id": "c", "message": "Thought after the duplicate", "hearts": 0},
        ])
        store = SqliteThoughtStore(self.db_path)

        assert import_thoughts_from_json(store, self.json_path) == 2
        assert store.count() == 2
        assert store.find_by_id("a").message == "First copy of a"
        assert store.find_by_id("c") is not None

    def test_table_without_seq_is_rebuilt(self):
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE thoughts (
                id TEXT PRIMARY KEY,
                message TEXT NOT NULL,
                tags JSON,
                hearts INTEGER,
                created_at TEXT NOT NULL
            )
        """)
        cursor.execute("""
            INSERT INTO thoughts (id, message, tags, hearts, created_at)
            VALUES ('first', 'Oldest row in the table', '["general"]', NULL, '2024-01-01T10:00:00.000000+00:00')
        """)
        cursor.execute("""
            INSERT INTO thoughts (id, message, tags, hearts, created_at)
            VALUES ('second', 'Newer row in the table', '["general"]', 7, '2024-01-01T10:00:00.000000+00:00')
        """)
        conn.commit()
        conn.close()

        schema_info = check_database_schema(self.db_path)
        assert schema_info["needs_migration"] is True
        assert "seq" in schema_info["missing_columns"]

        result = fix_database_schema(self.db_path)
        assert result["success"] is True
        assert result["columns_added"] == 4
        assert check_database_schema(self.db_path)["needs_migration"] is False

        store = SqliteThoughtStore(self.db_path)
        assert [t.id for t in store.find_all()] == ["first", "second"]
        # Equal timestamps: later insertion first
        assert [t.id for t in store.find_all(newest_first=True)] == ["second", "first"]
        assert store.find_by_id("first").hearts == 0
        assert store.find_by_id("second").hearts == 7
        assert store.find_by_id("second").likes == []

    def test_table_that_cannot_be_rebuilt_is_reported(self):
        conn = sqlite3.connect(self.db_path)
        conn.execute("CREATE TABLE thoughts (id TEXT PRIMARY KEY, message TEXT NOT NULL)")
        conn.execute("INSERT INTO thoughts (id, message) VALUES ('only', 'No timestamp column here')")
        conn.commit()
        conn.close()

        result = fix_database_schema(self.db_path)
        assert result["success"] is False
        assert "created_at" in result["error"]

        conn = sqlite3.connect(self.db_path)
        assert conn.execute("SELECT COUNT(*) FROM thoughts").fetchone()[0] == 1
        conn.close()

    def test_import_without_seed_file(self):
        store = JsonFileThoughtStore(os.path.join(self.temp_dir, "target.json"))
        assert import_thoughts_from_json(store, self.json_path) == 0
        assert store.count() == 0

    def test_storage_ready_in_database_mode(self):
        self._create_old_database()
        settings = Settings(use_database=True, database_path=self.db_path, thoughts_file=self.json_path)
        assert ensure_storage_ready(settings) is True
        assert check_database_schema(self.db_path)["needs_migration"] is False

    def test_storage_ready_in_file_mode(self):
        thoughts_file = os.path.join(self.temp_dir, "data", "thoughts.json")
        assert ensure_storage_ready(Settings(thoughts_file=thoughts_file)) is True
        assert os.path.isdir(os.path.dirname(thoughts_file))
