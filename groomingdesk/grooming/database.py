"""Document store for the grooming desk, backed by SQLite."""

from __future__ import annotations

import copy
import json
import logging
import secrets
import sqlite3
from pathlib import Path
from typing import Any

from .errors import PersistenceError
from .settings import default_settings, merge_settings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

COLLECTIONS = (
    "customers",
    "pets",
    "groomers",
    "queue",
    "service_records",
    "daily_schedules",
)

SAVE_FAILED = "Could not save changes, please try again"
LOAD_FAILED = "Could not load data, please try again"


def dict_factory(cursor: sqlite3.Cursor, row: sqlite3.Row) -> dict:
    """Return rows as dictionaries rather than tuples."""

    return {description[0]: row[idx] for idx, description in enumerate(cursor.description)}


def get_connection(path: str | Path) -> sqlite3.Connection:
    """Return a SQLite connection with sensible defaults."""

    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = dict_factory
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA busy_timeout = 5000")
    return conn


def initialize_database(conn: sqlite3.Connection) -> None:
    """Create the database schema if it does not yet exist."""

    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS metadata (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS documents (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            collection TEXT NOT NULL,
            id TEXT NOT NULL,
            data TEXT NOT NULL,
            UNIQUE(collection, id)
        );

        CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection);
        """
    )

    set_metadata(conn, "schema_version", SCHEMA_VERSION)


def set_metadata(conn: sqlite3.Connection, key: str, value: int | str | dict | list) -> None:
    if isinstance(value, (dict, list)):
        value = json.dumps(value)
    conn.execute(
        "INSERT INTO metadata(key, value) VALUES (?, ?)\n         ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, str(value)),
    )
    conn.commit()


def get_metadata(conn: sqlite3.Connection, key: str, default: str | None = None) -> str | None:
    row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else default


class DataStore:
    """CRUD and simple queries over named collections of JSON documents.

    Every collection is mirrored in memory on first use. The mirror only
    changes after the matching SQLite write has been committed, so a failed
    write leaves callers looking at the last known good data.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._cache: dict[str, dict[str, dict]] = {}
        self._settings: dict[str, Any] | None = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def generate_id(self) -> str:
        return secrets.token_hex(8)

    def _check_collection(self, collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}'")

    def _write(self, sql: str, params: tuple) -> list[dict]:
        try:
            rows = self.conn.execute(sql, params).fetchall()
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            logger.exception("Store write failed: %s", sql.split()[0])
            raise PersistenceError(SAVE_FAILED) from None
        return rows

    def _load(self, collection: str) -> dict[str, dict]:
        self._check_collection(collection)
        if collection not in self._cache:
            try:
                rows = self.conn.execute(
                    "SELECT id, data FROM documents WHERE collection = ? ORDER BY seq",
                    (collection,),
                ).fetchall()
            except sqlite3.Error:
                logger.exception("Store read failed for %s", collection)
                raise PersistenceError(LOAD_FAILED) from None
            self._cache[collection] = {row["id"]: json.loads(row["data"]) for row in rows}
        return self._cache[collection]

    def refresh(self, collection: str | None = None) -> None:
        """Drop the in-memory mirror so the next read goes to SQLite."""

        if collection is None:
            self._cache.clear()
            self._settings = None
        else:
            self._cache.pop(collection, None)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------
    def get_collection(self, collection: str) -> list[dict]:
        return [copy.deepcopy(doc) for doc in self._load(collection).values()]

    def get_entity(self, collection: str, entity_id: str) -> dict | None:
        doc = self._load(collection).get(entity_id)
        return copy.deepcopy(doc) if doc is not None else None

    def add_entity(self, collection: str, data: dict) -> dict:
        docs = self._load(collection)
        entity_id = self.generate_id()
        doc = {**copy.deepcopy(data), "id": entity_id}
        self._write(
            "INSERT INTO documents(collection, id, data) VALUES (?, ?, ?)",
            (collection, entity_id, json.dumps(doc)),
        )
        docs[entity_id] = doc
        logger.debug("Added %s/%s", collection, entity_id)
        return copy.deepcopy(doc)

    def update_entity(self, collection: str, entity_id: str, patch: dict) -> dict | None:
        docs = self._load(collection)
        current = docs.get(entity_id)
        if current is None:
            return None
        doc = {**current, **copy.deepcopy(patch), "id": entity_id}
        self._write(
            "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
            (json.dumps(doc), collection, entity_id),
        )
        docs[entity_id] = doc
        logger.debug("Updated %s/%s", collection, entity_id)
        return copy.deepcopy(doc)

    def delete_entity(self, collection: str, entity_id: str) -> None:
        docs = self._load(collection)
        self._write(
            "DELETE FROM documents WHERE collection = ? AND id = ?",
            (collection, entity_id),
        )
        docs.pop(entity_id, None)
        logger.debug("Deleted %s/%s", collection, entity_id)

    def query(self, collection: str, **equals: Any) -> list[dict]:
        return [
            copy.deepcopy(doc)
            for doc in self._load(collection).values()
            if all(doc.get(field) == value for field, value in equals.items())
        ]

    def query_range(self, collection: str, field: str, start: Any, end: Any) -> list[dict]:
        """Documents whose ``field`` lies within ``[start, end]``."""

        return [
            copy.deepcopy(doc)
            for doc in self._load(collection).values()
            if doc.get(field) is not None and start <= doc[field] <= end
        ]

    # ------------------------------------------------------------------
    # Counters & settings
    # ------------------------------------------------------------------
    def next_sequence(self, name: str, floor: int = 0) -> int:
        """Atomically issue the next number for ``name``, never below ``floor + 1``."""

        rows = self._write(
            """
            INSERT INTO metadata(key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = MAX(CAST(value AS INTEGER), ?) + 1
            RETURNING value
            """,
            (f"seq_{name}", str(floor + 1), floor),
        )
        return int(rows[0]["value"])

    def get_settings(self) -> dict[str, Any]:
        if self._settings is None:
            try:
                raw = get_metadata(self.conn, "settings")
            except sqlite3.Error:
                logger.exception("Store read failed for settings")
                raise PersistenceError(LOAD_FAILED) from None
            self._settings = json.loads(raw) if raw else default_settings()
        return copy.deepcopy(self._settings)

    def save_settings(self, patch: dict[str, Any]) -> dict[str, Any]:
        settings = merge_settings(self.get_settings(), patch)
        self._write(
            "INSERT INTO metadata(key, value) VALUES (?, ?)\n             ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            ("settings", json.dumps(settings)),
        )
        self._settings = settings
        return copy.deepcopy(settings)
