#!/usr/bin/env python3
"""
Database Schema Migration Script
Brings an existing SQLite thoughts database up to the current schema and seeds
an empty database from the legacy JSON thoughts file.
"""

import sqlite3
import logging
import os
import sys
from typing import Dict, Any

from tag_classifier import classify
from thought_models import Thought
from thought_store import (
    THOUGHT_INDEXES, THOUGHTS_TABLE_SQL, SqliteThoughtStore, ThoughtStore, create_tables, load_json_records
)

logger = logging.getLogger(__name__)

# Columns the current schema expects
REQUIRED_COLUMNS = {
    'seq': 'INTEGER',
    'id': 'TEXT',
    'message': 'TEXT',
    'tags': 'JSON',
    'hearts': 'INTEGER',
    'likes': 'JSON',
    'owner': 'TEXT',
    'created_at': 'TEXT',
    'revision': 'INTEGER'
}

# Columns added after the first schema; ALTER TABLE can add these in place
ADDABLE_COLUMNS = {
    'likes': "JSON DEFAULT '[]'",
    'owner': 'TEXT',
    'revision': 'INTEGER NOT NULL DEFAULT 0'
}

# Columns a pre-seq table must have to be rebuilt in place
REBUILD_REQUIRED_COLUMNS = {'id', 'message', 'created_at'}


def check_database_schema(db_path: str) -> Dict[str, Any]:
    """Check the current database schema and identify missing columns"""
    try:
        conn = sqlite3.connect(db_path, timeout=30.0)
        cursor = conn.cursor()

        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='thoughts'")
        if not cursor.fetchone():
            conn.close()
            return {"exists": False, "error": "thoughts table does not exist"}

        cursor.execute("PRAGMA table_info(thoughts)")
        columns = {row[1]: row[2] for row in cursor.fetchall()}
        missing_columns = [name for name in REQUIRED_COLUMNS if name not in columns]

        cursor.execute("SELECT COUNT(*) FROM thoughts")
        total_thoughts = cursor.fetchone()[0]

        untagged = 0
        if 'tags' in columns:
            cursor.execute("SELECT COUNT(*) FROM thoughts WHERE tags IS NULL OR tags = '' OR tags = '[]'")
            untagged = cursor.fetchone()[0]

        conn.close()

        return {
            "exists": True,
            "columns": columns,
            "missing_columns": missing_columns,
            "total_thoughts": total_thoughts,
            "untagged_thoughts": untagged,
            "needs_migration": len(missing_columns) > 0
        }

    except sqlite3.Error as e:
        logger.error(f"Failed to check database schema: {e}")
        return {"exists": False, "error": str(e)}


def _rebuild_thoughts_table(cursor, existing_columns) -> int:
    """Recreate a thoughts table that predates the seq column, keeping row order"""
    carried = [name for name in REQUIRED_COLUMNS if name != 'seq' and name in existing_columns]
    if not REBUILD_REQUIRED_COLUMNS <= set(carried):
        missing = sorted(REBUILD_REQUIRED_COLUMNS - set(carried))
        raise sqlite3.OperationalError(f"thoughts table cannot be rebuilt, missing {missing}")

    selected = [
        f"COALESCE({name}, 0)" if name in ('hearts', 'revision') else name
        for name in carried
    ]
    logger.info(f"🔁 Rebuilding thoughts table to add seq (carrying {', '.join(carried)})")
    cursor.execute("BEGIN")
    cursor.execute("ALTER TABLE thoughts RENAME TO thoughts_legacy")
    cursor.execute(THOUGHTS_TABLE_SQL)
    cursor.execute(
        f"INSERT INTO thoughts ({', '.join(carried)}) "
        f"SELECT {', '.join(selected)} FROM thoughts_legacy ORDER BY rowid"
    )
    cursor.execute("DROP TABLE thoughts_legacy")
    return len([name for name in REQUIRED_COLUMNS if name not in existing_columns])


def fix_database_schema(db_path: str) -> Dict[str, Any]:
    """Create missing tables, add missing columns and ensure indexes exist"""
    conn = None
    try:
        logger.info(f"🔧 Starting database schema fix for: {db_path}")
        create_tables(db_path)

        conn = sqlite3.connect(db_path, timeout=30.0)
        cursor = conn.cursor()

        cursor.execute("PRAGMA table_info(thoughts)")
        existing_columns = {row[1] for row in cursor.fetchall()}

        columns_added = 0
        if 'seq' not in existing_columns:
            columns_added += _rebuild_thoughts_table(cursor, existing_columns)
            cursor.execute("PRAGMA table_info(thoughts)")
            existing_columns = {row[1] for row in cursor.fetchall()}

        for column_name, column_def in ADDABLE_COLUMNS.items():
            if column_name not in existing_columns:
                try:
                    cursor.execute(f"ALTER TABLE thoughts ADD COLUMN {column_name} {column_def}")
                    logger.info(f"✅ Added column: {column_name}")
                    columns_added += 1
                except sqlite3.OperationalError as e:
                    logger.warning(f"⚠️ Could not add column {column_name}: {e}")

        for index_sql in THOUGHT_INDEXES:
            try:
                cursor.execute(index_sql)
            except sqlite3.OperationalError as e:
                logger.warning(f"Could not create index: {e}")

        conn.commit()

        logger.info(f"✅ Schema migration completed: {columns_added} columns added")
        return {"success": True, "columns_added": columns_added}

    except (sqlite3.Error, OSError) as e:
        if conn is not None:
            conn.rollback()
        logger.error(f"❌ Schema migration failed: {e}")
        return {"success": False, "error": str(e), "columns_added": 0}
    finally:
        if conn is not None:
            conn.close()


def import_thoughts_from_json(store: ThoughtStore, json_path: str) -> int:
    """Seed an empty store from a JSON thoughts file; returns the number imported"""
    existing = store.count()
    if existing > 0:
        logger.info(f"Database contains {existing} thoughts, skipping migration")
        return 0

    records = [r for r in load_json_records(json_path) if Thought.is_valid_record(r)]
    if not records:
        logger.info(f"📁 No thoughts to import from {json_path}")
        return 0

    logger.info(f"Empty database detected, importing {len(records)} thoughts from {json_path}")
    imported = 0
    seen_ids = set()
    for record in records:
        try:
            thought = Thought.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ Skipping unreadable record during import: {e}")
            continue
        if thought.id in seen_ids:
            logger.warning(f"⚠️ Skipping duplicate thought id during import: {thought.id}")
            continue
        seen_ids.add(thought.id)
        if not thought.tags:
            thought.tags = classify(thought.message)
        store.insert(thought)
        imported += 1

    logger.info(f"✅ Successfully imported {imported} thoughts")
    return imported


def main():
    """Command-line entry: report on and migrate a thoughts database"""
    logging.basicConfig(level=logging.INFO)

    if len(sys.argv) < 2:
        print("Usage: python schema_migration.py <database_path> [seed_json]")
        sys.exit(1)

    db_path = sys.argv[1]

    if not os.path.exists(db_path):
        logger.error(f"No database at {db_path}")
        sys.exit(1)

    logger.info(f"🔍 Inspecting thoughts schema in {db_path}")
    schema_info = check_database_schema(db_path)

    if schema_info.get("exists", False):
        logger.info("📊 Thoughts table:")
        logger.info(f"  - Total thoughts: {schema_info['total_thoughts']}")
        logger.info(f"  - Untagged thoughts: {schema_info['untagged_thoughts']}")
        logger.info(f"  - Columns to add: {schema_info['missing_columns'] or 'none'}")

        if not schema_info['needs_migration']:
            logger.info("✅ Nothing to migrate")

    if not schema_info.get("exists") or schema_info.get("needs_migration"):
        logger.info("🚀 Migrating thoughts table...")
        result = fix_database_schema(db_path)
        if not result['success']:
            logger.error(f"💥 Migration failed: {result['error']}")
            sys.exit(1)
        logger.info(f"🎉 Migration done, {result['columns_added']} columns added")

    if len(sys.argv) > 2:
        imported = import_thoughts_from_json(SqliteThoughtStore(db_path), sys.argv[2])
        logger.info(f"📥 Imported {imported} thoughts from {sys.argv[2]}")


if __name__ == "__main__":
    main()
