"""
Storage backends for thoughts and users.

Two interchangeable implementations sit behind the ThoughtStore / UserStore
interfaces: a flat JSON file (whole collection rewritten on every change) and
an SQLite database. The backend is chosen once at application start-up and
injected into the services.
"""

import json
import logging
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, List, Optional

from api_errors import DatabaseError
from app_config import ensure_parent_directory
from thought_models import Thought, User, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


class ThoughtStore(ABC):
    """Persistence boundary used by the thought service"""

    @abstractmethod
    def insert(self, thought: Thought) -> Thought: ...

    @abstractmethod
    def find_by_id(self, thought_id: str) -> Optional[Thought]: ...

    @abstractmethod
    def find_all(self, skip: int = 0, limit: Optional[int] = None,
                 newest_first: bool = False) -> List[Thought]:
        """All thoughts in insertion order, or newest `createdAt` first"""

    @abstractmethod
    def update(self, thought: Thought) -> Optional[Thought]: ...

    @abstractmethod
    def delete(self, thought_id: str) -> bool: ...

    @abstractmethod
    def count(self) -> int: ...


class UserStore(ABC):

    @abstractmethod
    def insert(self, user: User) -> User: ...

    @abstractmethod
    def find_by_id(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[User]: ...


# ===== JSON FILE BACKEND =====

def load_json_records(file_path: str) -> List[Dict[str, Any]]:
    """Read a JSON array of records; anything unreadable yields an empty list"""
    if not os.path.exists(file_path):
        return []
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"⚠️ Could not read {file_path}, starting empty: {e}")
        return []

    if not isinstance(data, list):
        logger.error(f"JSON file {file_path} does not contain an array")
        return []
    return data


def write_json_records(file_path: str, records: List[Dict[str, Any]]) -> None:
    """Atomically replace the file with the given records"""
    ensure_parent_directory(file_path)
    directory = os.path.dirname(os.path.abspath(file_path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, file_path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def _sort_newest_first(thoughts: List[Thought]) -> List[Thought]:
    indexed = list(enumerate(thoughts))
    indexed.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
    return [thought for _, thought in indexed]


def _copy(thought: Thought) -> Thought:
    return replace(thought, tags=list(thought.tags), likes=list(thought.likes))


def _window(items: List[Any], skip: int, limit: Optional[int]) -> List[Any]:
    end = None if limit is None else skip + limit
    return items[skip:end]


class JsonFileThoughtStore(ThoughtStore):
    """Thoughts kept in memory and mirrored to a JSON file"""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._lock = threading.RLock()
        self._thoughts: List[Thought] = self._load()
        logger.info(f"📁 JSON thought store at {file_path} ({len(self._thoughts)} thoughts)")

    def _load(self) -> List[Thought]:
        thoughts = []
        records = load_json_records(self.file_path)
        for record in records:
            if not Thought.is_valid_record(record):
                continue
            try:
                thoughts.append(Thought.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"⚠️ Skipping unreadable thought record: {e}")
        skipped = len(records) - len(thoughts)
        if skipped:
            logger.warning(f"⚠️ Filtered out {skipped} invalid thought records from {self.file_path}")
        return thoughts

    def _save(self, operation: str) -> None:
        try:
            write_json_records(self.file_path, [t.to_dict() for t in self._thoughts])
        except OSError as e:
            logger.error(f"Error saving thoughts data during {operation}: {e}")
            raise DatabaseError(operation) from e

    def _index_of(self, thought_id: str) -> int:
        for index, thought in enumerate(self._thoughts):
            if thought.id == thought_id:
                return index
        return -1

    def insert(self, thought: Thought) -> Thought:
        with self._lock:
            self._thoughts.append(_copy(thought))
            try:
                self._save("insert thought")
            except DatabaseError:
                self._thoughts.pop()
                raise
        return thought

    def find_by_id(self, thought_id: str) -> Optional[Thought]:
        with self._lock:
            index = self._index_of(thought_id)
            return _copy(self._thoughts[index]) if index != -1 else None

    def find_all(self, skip: int = 0, limit: Optional[int] = None,
                 newest_first: bool = False) -> List[Thought]:
        with self._lock:
            thoughts = [_copy(t) for t in self._thoughts]
        if newest_first:
            thoughts = _sort_newest_first(thoughts)
        return _window(thoughts, skip, limit)

    def update(self, thought: Thought) -> Optional[Thought]:
        with self._lock:
            index = self._index_of(thought.id)
            if index == -1:
                return None
            previous = self._thoughts[index]
            self._thoughts[index] = _copy(thought)
            try:
                self._save("update thought")
            except DatabaseError:
                self._thoughts[index] = previous
                raise
        return thought

    def delete(self, thought_id: str) -> bool:
        with self._lock:
            index = self._index_of(thought_id)
            if index == -1:
                return False
            removed = self._thoughts.pop(index)
            try:
                self._save("delete thought")
            except DatabaseError:
                self._thoughts.insert(index, removed)
                raise
        return True

    def count(self) -> int:
        with self._lock:
            return len(self._thoughts)


class JsonFileUserStore(UserStore):

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._lock = threading.RLock()
        self._users: List[User] = []
        for record in load_json_records(file_path):
            try:
                self._users.append(User.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"⚠️ Skipping unreadable user record: {e}")

    def insert(self, user: User) -> User:
        with self._lock:
            self._users.append(user)
            try:
                write_json_records(self.file_path, [u.to_dict() for u in self._users])
            except OSError as e:
                self._users.pop()
                logger.error(f"Error saving users data: {e}")
                raise DatabaseError("insert user") from e
        return user

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            return next((u for u in self._users if u.id == user_id), None)

    def find_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            return next((u for u in self._users if u.username == username), None)


# ===== SQLITE BACKEND =====

THOUGHTS_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS thoughts (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT UNIQUE NOT NULL,
        message TEXT NOT NULL,
        tags JSON,
        hearts INTEGER NOT NULL DEFAULT 0,
        likes JSON,
        owner TEXT,
        created_at TEXT NOT NULL,
        revision INTEGER NOT NULL DEFAULT 0
    )
"""

USERS_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
"""

THOUGHT_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_thoughts_created_at ON thoughts(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_thoughts_hearts ON thoughts(hearts)",
    "CREATE INDEX IF NOT EXISTS idx_thoughts_owner ON thoughts(owner)",
]


def get_db_connection(db_path: str) -> sqlite3.Connection:
    """Open an SQLite connection with dict-like rows"""
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_path: str) -> None:
    ensure_parent_directory(db_path)
    conn = get_db_connection(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute(THOUGHTS_TABLE_SQL)
        cursor.execute(USERS_TABLE_SQL)
        for index_sql in THOUGHT_INDEXES:
            try:
                cursor.execute(index_sql)
            except sqlite3.OperationalError as e:
                # Older tables may lack the indexed column until migrated
                logger.warning(f"⚠️ Could not create index: {e}")
        conn.commit()
    finally:
        conn.close()


def _row_to_thought(row: sqlite3.Row) -> Thought:
    return Thought(
        id=row["id"],
        message=row["message"],
        tags=json.loads(row["tags"] or "[]"),
        hearts=row["hearts"],
        likes=json.loads(row["likes"] or "[]"),
        owner=row["owner"],
        created_at=parse_timestamp(row["created_at"]),
        revision=row["revision"],
    )


class _SqliteBase:

    def __init__(self, db_path: str):
        self.db_path = db_path
        try:
            create_tables(db_path)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Database initialization failed at {db_path}: {e}")
            raise DatabaseError("initialization") from e

    def _execute(self, operation: str, sql: str, params=(), fetch: str = "none"):
        conn = get_db_connection(self.db_path)
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            if fetch == "one":
                result = cursor.fetchone()
            elif fetch == "all":
                result = cursor.fetchall()
            else:
                result = cursor.rowcount
            conn.commit()
            return result
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Database error during {operation}: {e}")
            raise DatabaseError(operation) from e
        finally:
            conn.close()


class SqliteThoughtStore(_SqliteBase, ThoughtStore):
    """Thoughts stored as rows; tags and likes as JSON text"""

    def __init__(self, db_path: str):
        super().__init__(db_path)
        logger.info(f"💾 SQLite thought store at {db_path}")

    def insert(self, thought: Thought) -> Thought:
        self._execute("insert thought", """
            INSERT INTO thoughts (id, message, tags, hearts, likes, owner, created_at, revision)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            thought.id,
            thought.message,
            json.dumps(thought.tags, ensure_ascii=False),
            thought.hearts,
            json.dumps(thought.likes),
            thought.owner,
            format_timestamp(thought.created_at),
            thought.revision
        ))
        return thought

    def find_by_id(self, thought_id: str) -> Optional[Thought]:
        row = self._execute("find thought", "SELECT * FROM thoughts WHERE id = ?",
                            (thought_id,), fetch="one")
        return _row_to_thought(row) if row else None

    def find_all(self, skip: int = 0, limit: Optional[int] = None,
                 newest_first: bool = False) -> List[Thought]:
        order = "created_at DESC, seq DESC" if newest_first else "seq ASC"
        # SQLite needs a LIMIT clause to use OFFSET; -1 means no limit
        rows = self._execute(
            "list thoughts",
            f"SELECT * FROM thoughts ORDER BY {order} LIMIT ? OFFSET ?",
            (-1 if limit is None else limit, skip),
            fetch="all"
        )
        return [_row_to_thought(row) for row in rows]

    def update(self, thought: Thought) -> Optional[Thought]:
        changed = self._execute("update thought", """
            UPDATE thoughts
            SET message = ?, tags = ?, hearts = ?, likes = ?, owner = ?, revision = ?
            WHERE id = ?
        """, (
            thought.message,
            json.dumps(thought.tags, ensure_ascii=False),
            thought.hearts,
            json.dumps(thought.likes),
            thought.owner,
            thought.revision,
            thought.id
        ))
        return thought if changed else None

    def delete(self, thought_id: str) -> bool:
        return self._execute("delete thought", "DELETE FROM thoughts WHERE id = ?", (thought_id,)) > 0

    def count(self) -> int:
        row = self._execute("count thoughts", "SELECT COUNT(*) FROM thoughts", fetch="one")
        return row[0]


class SqliteUserStore(_SqliteBase, UserStore):

    def insert(self, user: User) -> User:
        self._execute("insert user", """
            INSERT INTO users (id, username, password_hash, created_at) VALUES (?, ?, ?, ?)
        """, (user.id, user.username, user.password_hash, format_timestamp(user.created_at)))
        return user

    def _find(self, column: str, value: str) -> Optional[User]:
        row = self._execute("find user", f"SELECT * FROM users WHERE {column} = ?",
                            (value,), fetch="one")
        if not row:
            return None
        return User(
            id=row["id"],
            username=row["username"],
            password_hash=row["password_hash"],
            created_at=parse_timestamp(row["created_at"]),
        )

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self._find("id", user_id)

    def find_by_username(self, username: str) -> Optional[User]:
        return self._find("username", username)
