"""SQLite repository.

Implements the IItemRepository contract on a local SQLite database, together
with the operator write operations used to register guilds, channels and
filters.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from dateutil import parser as date_parser

from ..models.destination import Destination, Guild
from ..models.filter import NotificationFilter, parse_filter
from ..models.item import Item
from ..models.snapshot import PollSnapshot
from ..utils.error_handling import ParseError, StorageError

logger = logging.getLogger(__name__)


class SQLiteRepository:
    """Thin SQLite wrapper that satisfies the IItemRepository contract.

    Every public method raises StorageError when the database round-trip
    fails.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self._db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - fetch_runs: the id list observed on each poll
        - item_snapshots: detail records of newly discovered items
        - discord_guilds: registered servers and their fallback channels
        - notification_filters: filters in their stored YAML form
        - discord_channels: destinations with their assigned filter
        """
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS fetch_runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    fetched_at TIMESTAMP NOT NULL,
                    item_ids TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS item_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    fetched_at TIMESTAMP NOT NULL,
                    item_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    payload TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS discord_guilds (
                    guild_id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    fallback_channel_id INTEGER,
                    fallback_nsfw_channel_id INTEGER
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notification_filters (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    rule_yaml TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS discord_channels (
                    channel_id INTEGER PRIMARY KEY,
                    guild_id INTEGER NOT NULL
                        REFERENCES discord_guilds(guild_id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    filter_id INTEGER
                        REFERENCES notification_filters(id) ON DELETE SET NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_channels_guild "
                "ON discord_channels (guild_id)"
            )

    # Poll snapshots and item records

    def load_latest_snapshot(self) -> Optional[PollSnapshot]:
        """Return the most recent poll snapshot, if any."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, fetched_at, item_ids FROM fetch_runs "
                "ORDER BY id DESC LIMIT 1"
            ).fetchone()

        if row is None:
            return None

        try:
            item_ids = [int(item_id) for item_id in json.loads(row["item_ids"])]
        except (TypeError, ValueError) as e:
            raise StorageError(f"Corrupt snapshot {row['id']}: {e}") from e

        return PollSnapshot(
            item_ids=item_ids,
            fetched_at=date_parser.isoparse(row["fetched_at"]),
            id=row["id"],
        )

    def save_snapshot(self, item_ids: List[int], fetched_at: datetime) -> None:
        """Append the id list observed on one poll."""
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO fetch_runs (fetched_at, item_ids) VALUES (?, ?)",
                (fetched_at.isoformat(), json.dumps(list(item_ids))),
            )

    def persist_item_record(self, item: Item) -> None:
        """Store the detail record of a newly discovered item."""
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO item_snapshots (fetched_at, item_id, name, payload)
                VALUES (?, ?, ?, ?)
                """,
                (
                    now.isoformat(),
                    item.id,
                    item.name,
                    json.dumps(item.payload, ensure_ascii=False),
                ),
            )

    # Guilds and destinations

    def load_guilds(self) -> List[Guild]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT guild_id, name, fallback_channel_id, fallback_nsfw_channel_id "
                "FROM discord_guilds ORDER BY guild_id"
            ).fetchall()

        return [
            Guild(
                id=row["guild_id"],
                name=row["name"],
                fallback_destination_id=row["fallback_channel_id"],
                adult_fallback_destination_id=row["fallback_nsfw_channel_id"],
            )
            for row in rows
        ]

    def load_destinations(self, guild_id: int) -> List[Destination]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT channel_id, guild_id, name, filter_id FROM discord_channels "
                "WHERE guild_id = ? ORDER BY channel_id",
                (guild_id,),
            ).fetchall()

        return [
            Destination(
                id=row["channel_id"],
                guild_id=row["guild_id"],
                name=row["name"],
                filter_id=row["filter_id"],
            )
            for row in rows
        ]

    def upsert_guild(
        self,
        guild_id: int,
        name: str,
        fallback_channel_id: Optional[int] = None,
        fallback_nsfw_channel_id: Optional[int] = None,
    ) -> Guild:
        """Register a guild or update its name and fallback channels."""
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO discord_guilds (
                    guild_id, name, created_at,
                    fallback_channel_id, fallback_nsfw_channel_id
                ) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(guild_id) DO UPDATE SET
                    name = excluded.name,
                    fallback_channel_id = excluded.fallback_channel_id,
                    fallback_nsfw_channel_id = excluded.fallback_nsfw_channel_id
                """,
                (
                    guild_id,
                    name,
                    now.isoformat(),
                    fallback_channel_id,
                    fallback_nsfw_channel_id,
                ),
            )

        return Guild(
            id=guild_id,
            name=name,
            fallback_destination_id=fallback_channel_id,
            adult_fallback_destination_id=fallback_nsfw_channel_id,
        )

    def upsert_destination(
        self, channel_id: int, guild_id: int, name: str = ""
    ) -> Destination:
        """Register a channel, keeping its filter assignment if it exists."""
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO discord_channels (channel_id, guild_id, name, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(channel_id) DO UPDATE SET
                    guild_id = excluded.guild_id,
                    name = excluded.name
                """,
                (channel_id, guild_id, name, now.isoformat()),
            )
            row = conn.execute(
                "SELECT filter_id FROM discord_channels WHERE channel_id = ?",
                (channel_id,),
            ).fetchone()

        return Destination(
            id=channel_id, guild_id=guild_id, name=name, filter_id=row["filter_id"]
        )

    def set_destination_filter(self, channel_id: int, filter_id: Optional[int]) -> None:
        """Assign a filter to a channel, or clear it with None."""
        with self._connect() as conn:
            if filter_id is not None:
                exists = conn.execute(
                    "SELECT 1 FROM notification_filters WHERE id = ?", (filter_id,)
                ).fetchone()
                if exists is None:
                    raise StorageError(f"Filter {filter_id} does not exist")

            cur = conn.execute(
                "UPDATE discord_channels SET filter_id = ? WHERE channel_id = ?",
                (filter_id, channel_id),
            )
            if cur.rowcount == 0:
                raise StorageError(f"Channel {channel_id} is not registered")

    # Filters

    def create_filter(self, rule_yaml: str) -> NotificationFilter:
        """
        Store a new filter.

        Raises:
            ValueError: If the text is not a valid, non-empty filter
        """
        try:
            parse_filter(rule_yaml).validate()
        except ParseError as e:
            raise ValueError(f"Invalid filter: {e}") from e

        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO notification_filters (rule_yaml, created_at) VALUES (?, ?)",
                (rule_yaml, now),
            )
            filter_id = cur.lastrowid

        logger.info(f"Created notification filter {filter_id}")
        return NotificationFilter(id=filter_id, rule_yaml=rule_yaml, created_at=now)

    def get_filter(self, filter_id: int) -> Optional[NotificationFilter]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, rule_yaml, created_at FROM notification_filters "
                "WHERE id = ?",
                (filter_id,),
            ).fetchone()

        if row is None:
            return None
        return NotificationFilter(
            id=row["id"], rule_yaml=row["rule_yaml"], created_at=row["created_at"]
        )

    def list_filters(self) -> List[NotificationFilter]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, rule_yaml, created_at FROM notification_filters ORDER BY id"
            ).fetchall()

        return [
            NotificationFilter(
                id=row["id"], rule_yaml=row["rule_yaml"], created_at=row["created_at"]
            )
            for row in rows
        ]

    def load_filters_by_ids(self, filter_ids: Iterable[int]) -> Dict[int, str]:
        """Return stored filter texts keyed by id. Unknown ids are omitted."""
        ids = sorted(set(filter_ids))
        if not ids:
            return {}

        placeholders = ", ".join("?" for _ in ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT id, rule_yaml FROM notification_filters "
                f"WHERE id IN ({placeholders})",
                ids,
            ).fetchall()

        return {row["id"]: row["rule_yaml"] for row in rows}

    def delete_filter(self, filter_id: int) -> bool:
        """Delete a filter and clear it from every channel using it.

        Returns:
            True if a filter was deleted
        """
        with self._connect() as conn:
            conn.execute(
                "UPDATE discord_channels SET filter_id = NULL WHERE filter_id = ?",
                (filter_id,),
            )
            cur = conn.execute(
                "DELETE FROM notification_filters WHERE id = ?", (filter_id,)
            )
            deleted = cur.rowcount > 0

        if deleted:
            logger.info(f"Deleted notification filter {filter_id}")
        return deleted
