from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

from config.defaults import HISTORY_STATE_KEY
from streams.errors import StoreUnavailable
from streams.models import NotificationKey
from streams.models import NotificationRecord


T = TypeVar("T")
HistoryMap = dict[NotificationKey, NotificationRecord]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_state_sync(conn: sqlite3.Connection, key: str) -> Any | None:
    cur = conn.cursor()
    cur.execute("SELECT value_json FROM stream_state WHERE key = ? LIMIT 1", (str(key),))
    row = cur.fetchone()
    if row is None:
        return None
    return json.loads(row[0])


def put_state_sync(conn: sqlite3.Connection, key: str, value: Any) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO stream_state (key, value_json, updated_at_utc)
        VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET
            value_json=excluded.value_json,
            updated_at_utc=excluded.updated_at_utc
        """,
        (str(key), json.dumps(value, ensure_ascii=False), _utc_now_iso()),
    )
    conn.commit()


class SqliteStateStore:
    """Whole-value key/value persistence on top of the bot's sqlite connection."""

    def __init__(self, *, db_lock, db_conn: sqlite3.Connection) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn

    async def get(self, key: str) -> Any | None:
        try:
            async with self.db_lock:
                return await asyncio.to_thread(get_state_sync, self.db_conn, key)
        except (sqlite3.Error, ValueError) as e:
            raise StoreUnavailable(f"read of {key!r} failed: {e}") from e

    async def put(self, key: str, value: Any) -> None:
        try:
            async with self.db_lock:
                await asyncio.to_thread(put_state_sync, self.db_conn, key, value)
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StoreUnavailable(f"write of {key!r} failed: {e}") from e


def decode_history(raw: Any) -> HistoryMap:
    out: HistoryMap = {}
    if not isinstance(raw, dict):
        return out
    for raw_key, raw_record in raw.items():
        try:
            key = NotificationKey.parse(raw_key)
        except ValueError as e:
            print(f"[Streams] dropping unreadable history key {raw_key!r}: {e}")
            continue
        record = NotificationRecord.from_dict(raw_record)
        if record is None:
            continue
        out[key] = record
    return out


def encode_history(history: HistoryMap) -> dict[str, dict[str, Any]]:
    return {key.serialize(): record.to_dict() for key, record in history.items() if record.message_ref}


class NotificationHistory:
    """The persisted NotificationRecord map, stored under a single state key.

    Every mutation is a full read-modify-write of the map under one lock, so
    concurrent passes for different streamers never lose each other's updates.
    """

    def __init__(self, store, *, key: str = HISTORY_STATE_KEY) -> None:
        self.store = store
        self.key = key
        self._write_lock = asyncio.Lock()

    async def load(self) -> HistoryMap:
        return decode_history(await self.store.get(self.key))

    async def get(self, key: NotificationKey) -> NotificationRecord | None:
        return (await self.load()).get(key)

    async def records_for_group(self, group_id: str) -> list[NotificationRecord]:
        history = await self.load()
        return [rec for key, rec in history.items() if key.group_id == str(group_id)]

    async def update(self, mutator: Callable[[HistoryMap], T]) -> T:
        async with self._write_lock:
            history = dict(await self.load())
            result = mutator(history)
            await self.store.put(self.key, encode_history(history))
            return result

    async def put_record(self, key: NotificationKey, record: NotificationRecord) -> None:
        def _put(history: HistoryMap) -> None:
            history[key] = record

        await self.update(_put)

    async def delete_record(self, key: NotificationKey) -> bool:
        def _delete(history: HistoryMap) -> bool:
            return history.pop(key, None) is not None

        return await self.update(_delete)

    async def touch_record(self, key: NotificationKey, now: datetime, *, retire: bool = False) -> bool:
        def _touch(history: HistoryMap) -> bool:
            current = history.get(key)
            if current is None:
                return False
            history[key] = current.retired(now) if retire else current.touched(now)
            return True

        return await self.update(_touch)
