"""
SQLite-backed persistent store.

Holds two collections:

- sessions: subscriber records keyed by the composite session key, with a
  JSON ``data`` blob (the saved search lives under ``data.url``)
- items: one document per listing keyed by ``kufar_id`` plus the
  ``has_sent_to`` delivery record
"""

import json
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ..models.config import StorageConfig
from ..models.delivery import DeliveryRecord
from ..models.subscriber import Subscriber
from ..utils.logging import get_logger

logger = get_logger("store")


def _load_json(value: Optional[str]) -> Dict[str, Any]:
    if not value:
        return {}
    try:
        data = json.loads(value)
    except (TypeError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


class SQLiteStore:
    """Sessions and listings collections in a single SQLite database."""

    def __init__(self, config: StorageConfig):
        config.validate()
        self.db_path = config.database_path
        self.sessions_table = config.sessions_collection
        self.items_table = config.items_collection

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a connection and hold a write lock for the whole block."""
        with closing(sqlite3.connect(self.db_path, isolation_level=None)) as conn:
            conn.row_factory = sqlite3.Row
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with closing(sqlite3.connect(self.db_path)) as conn:
            conn.row_factory = sqlite3.Row
            return conn.execute(sql, params).fetchall()

    def init_db(self) -> None:
        """Create both collections if they do not exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with self._transaction() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.sessions_table} (
                    key TEXT PRIMARY KEY,
                    data TEXT NOT NULL DEFAULT '{{}}'
                )
                """
            )
            # kufar_id is the unique listing key
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.items_table} (
                    kufar_id TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    has_sent_to TEXT NOT NULL DEFAULT '{{}}',
                    updated_at TEXT NOT NULL
                )
                """
            )

        logger.info(
            "Store initialized",
            extra={
                "database_path": self.db_path,
                "sessions": self.sessions_table,
                "items": self.items_table,
            },
        )

    # Sessions

    def load_subscribers(self) -> List[Subscriber]:
        """Return subscribers with a saved filter URL, in insertion order."""
        rows = self._query(
            f"SELECT key, data FROM {self.sessions_table} ORDER BY rowid"
        )

        subscribers = []
        for row in rows:
            subscriber = Subscriber(key=row["key"], url=_load_json(row["data"]).get("url"))
            if subscriber.is_active:
                subscribers.append(subscriber)
        return subscribers

    def get_subscriber(self, key: str) -> Optional[Subscriber]:
        rows = self._query(
            f"SELECT key, data FROM {self.sessions_table} WHERE key = ?", (key,)
        )
        if not rows:
            return None
        return Subscriber(key=rows[0]["key"], url=_load_json(rows[0]["data"]).get("url"))

    def save_subscriber_url(self, key: str, url: Optional[str]) -> None:
        """Set (or clear, with None) the saved filter URL of a session."""
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT data FROM {self.sessions_table} WHERE key = ?", (key,)
            ).fetchone()
            data = _load_json(row["data"]) if row else {}
            data["url"] = url
            conn.execute(
                f"""
                INSERT INTO {self.sessions_table} (key, data) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET data = excluded.data
                """,
                (key, json.dumps(data)),
            )

    def unsubscribe_recipient(self, recipient_id: str) -> int:
        """
        Clear the saved filter of every session that delivers to ``recipient_id``.

        Returns:
            Number of sessions that were unsubscribed
        """
        recipient_id = str(recipient_id)
        prefix = f"{recipient_id}:"
        count = 0

        with self._transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT key, data FROM {self.sessions_table}
                WHERE key = ? OR substr(key, 1, ?) = ?
                """,
                (recipient_id, len(prefix), prefix),
            ).fetchall()

            for row in rows:
                data = _load_json(row["data"])
                if data.get("url") is None:
                    continue
                data["url"] = None
                conn.execute(
                    f"UPDATE {self.sessions_table} SET data = ? WHERE key = ?",
                    (json.dumps(data), row["key"]),
                )
                count += 1

        logger.info(
            "Recipient unsubscribed",
            extra={"recipient_id": recipient_id, "sessions": count},
        )
        return count

    # Items

    def get_delivery_record(self, kufar_id: str) -> DeliveryRecord:
        """Delivery record of a listing; empty when the listing is unknown."""
        rows = self._query(
            f"SELECT has_sent_to FROM {self.items_table} WHERE kufar_id = ?",
            (str(kufar_id),),
        )
        has_sent_to = _load_json(rows[0]["has_sent_to"]) if rows else {}
        return DeliveryRecord(
            kufar_id=str(kufar_id),
            has_sent_to={key: bool(value) for key, value in has_sent_to.items()},
        )

    def get_listing_document(self, kufar_id: str) -> Optional[Dict[str, Any]]:
        rows = self._query(
            f"SELECT document FROM {self.items_table} WHERE kufar_id = ?",
            (str(kufar_id),),
        )
        return _load_json(rows[0]["document"]) if rows else None

    def mark_sent(
        self, kufar_id: str, recipient_id: str, document: Dict[str, Any]
    ) -> DeliveryRecord:
        """
        Set the sent flag for one recipient and upsert the listing document.

        The read-merge-write runs under a single write lock so concurrent
        updates for other recipients of the same listing are never lost.
        """
        kufar_id = str(kufar_id)
        recipient_id = str(recipient_id)

        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT has_sent_to FROM {self.items_table} WHERE kufar_id = ?",
                (kufar_id,),
            ).fetchone()
            has_sent_to = _load_json(row["has_sent_to"]) if row else {}
            has_sent_to[recipient_id] = True

            document = dict(document)
            document["kufar_id"] = kufar_id
            document.pop("has_sent_to", None)

            conn.execute(
                f"""
                INSERT INTO {self.items_table} (kufar_id, document, has_sent_to, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(kufar_id) DO UPDATE SET
                    document = excluded.document,
                    has_sent_to = excluded.has_sent_to,
                    updated_at = excluded.updated_at
                """,
                (
                    kufar_id,
                    json.dumps(document, default=str),
                    json.dumps(has_sent_to),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )

        return DeliveryRecord(
            kufar_id=kufar_id,
            has_sent_to={key: bool(value) for key, value in has_sent_to.items()},
        )
