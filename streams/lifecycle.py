from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Sequence

from config.defaults import DEFAULT_TRANSPORT_TIMEOUT_SECONDS
from streams.errors import MessageNotFound
from streams.errors import PermissionDenied
from streams.errors import StoreUnavailable
from streams.errors import TransportError
from streams.models import Destination
from streams.models import NotificationKey
from streams.models import NotificationRecord
from streams.models import StreamEvent
from streams.models import utc_now


def live_content(event: StreamEvent, mention: str | None = None) -> str:
    text = f"{event.display_name} went live on Twitch!"
    if mention:
        text += f" {mention}"
    return text


def ended_content(event: StreamEvent) -> str:
    return f"{event.display_name} was live on Twitch."


@dataclass(slots=True)
class PassResult:
    streamer_id: str
    is_live: bool
    destinations: int = 0
    sent: int = 0
    edited: int = 0
    retired: int = 0
    stale_recovered: int = 0
    rate_limited: int = 0
    permission_denied: int = 0
    failed: int = 0
    skipped: int = 0
    failed_destinations: set[tuple[str, str]] = field(default_factory=set)

    def mark_denied(self, destination: Destination) -> None:
        self.permission_denied += 1
        self.failed_destinations.add((str(destination.group_id), str(destination.destination_id)))

    def is_failed(self, destination: Destination) -> bool:
        return (str(destination.group_id), str(destination.destination_id)) in self.failed_destinations

    def summary(self) -> str:
        return (
            f"sent={self.sent} edited={self.edited} retired={self.retired} "
            f"stale={self.stale_recovered} rate_limited={self.rate_limited} "
            f"denied={self.permission_denied} failed={self.failed} skipped={self.skipped}"
        )


class NotificationLifecycleManager:
    """Decides create / edit / retire / skip for every destination of a pass.

    The persisted record is the only source of truth for whether a destination
    already has a notification for a streamer:

        Absent   + live    -> send (rate limited), record created
        Absent   + offline -> nothing
        Active   + live    -> fetch + edit in place; deleted message -> recreate
        Active   + offline -> terminal edit, record marked offline
        Retiring + offline -> nothing
        Retiring + live    -> retired record dropped, treated as Absent + live
    """

    def __init__(
        self,
        *,
        history,
        transport,
        rate_limiter,
        mention_resolver,
        mention_config=None,
        transport_timeout: float = DEFAULT_TRANSPORT_TIMEOUT_SECONDS,
    ) -> None:
        self.history = history
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.mention_resolver = mention_resolver
        self.mention_config = mention_config
        self.transport_timeout = float(transport_timeout)
        self._group_locks: dict[str, asyncio.Lock] = {}

    def _group_lock(self, group_id: str) -> asyncio.Lock:
        key = str(group_id)
        lock = self._group_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._group_locks[key] = lock
        return lock

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        if self.transport_timeout <= 0:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.transport_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"transport call timed out after {self.transport_timeout:.0f}s") from e

    async def reconcile(
        self,
        event: StreamEvent,
        destinations: Sequence[Destination],
        now: datetime | None = None,
    ) -> PassResult:
        now = now or utc_now()
        snapshot = tuple(destinations or ())
        result = PassResult(streamer_id=event.streamer_id, is_live=event.is_live, destinations=len(snapshot))

        by_group: dict[str, list[Destination]] = {}
        for dest in snapshot:
            by_group.setdefault(str(dest.group_id), []).append(dest)

        await asyncio.gather(
            *(self._process_group(event, dests, now, result) for dests in by_group.values())
        )
        return result

    async def _process_group(
        self,
        event: StreamEvent,
        destinations: list[Destination],
        now: datetime,
        result: PassResult,
    ) -> None:
        for dest in destinations:
            # discovery can list a channel twice; a denied one stays skipped
            if result.is_failed(dest):
                print(f"[Discord] skipping {dest.label()} for the rest of this pass (permission denied)")
                result.skipped += 1
                continue
            try:
                await self._process_destination(event, dest, now, result)
            except StoreUnavailable as e:
                result.failed += 1
                print(f"[Streams] state store failure for {dest.label()} / {event.streamer_id}: {e}")
            except Exception as e:
                result.failed += 1
                print(f"[Streams] unexpected error for {dest.label()} / {event.streamer_id}: {e}")

    async def _process_destination(
        self,
        event: StreamEvent,
        dest: Destination,
        now: datetime,
        result: PassResult,
    ) -> None:
        key = NotificationKey.for_pair(dest, event.streamer_id)
        record = await self.history.get(key)

        if record is not None and record.is_offline:
            if not event.is_live:
                result.skipped += 1
                return
            await self.history.delete_record(key)
            record = None

        if record is None:
            if not event.is_live:
                result.skipped += 1
                return
            await self._create(event, dest, key, now, result)
            return

        if event.is_live:
            await self._edit_live(event, dest, key, record, now, result)
        else:
            await self._retire(event, dest, key, record, now, result)

    async def _create(
        self,
        event: StreamEvent,
        dest: Destination,
        key: NotificationKey,
        now: datetime,
        result: PassResult,
    ) -> None:
        if not dest.can_post:
            print(f"[Discord] Permission problem: cannot post to {dest.label()}; announcement skipped.")
            result.skipped += 1
            return
        # check, send and record write are atomic per group
        async with self._group_lock(dest.group_id):
            await self._create_locked(event, dest, key, now, result)

    async def _create_locked(
        self,
        event: StreamEvent,
        dest: Destination,
        key: NotificationKey,
        now: datetime,
        result: PassResult,
    ) -> None:
        if not await self.rate_limiter.allow_new_notification(dest.group_id, now):
            print(f"[Streams] rate limit reached for group {dest.group_id}; {event.streamer_id} not announced in {dest.label()}")
            result.rate_limited += 1
            return

        mention = self.mention_resolver.resolve(event.streamer_id, dest, self.mention_config)
        try:
            message_ref = await self._call(self.transport.send(dest, live_content(event, mention), event))
        except PermissionDenied as e:
            result.mark_denied(dest)
            print(f"[Discord] Permission denied sending to {dest.label()}: {e}")
            return
        except TransportError as e:
            result.failed += 1
            print(f"[Discord] Message send problem in {dest.label()}: {e}")
            return

        if message_ref is None:
            result.failed += 1
            print(f"[Discord] send to {dest.label()} returned no message reference")
            return
        await self.history.put_record(
            key,
            NotificationRecord(message_ref=str(message_ref), is_offline=False, created_at=now, last_updated_at=now),
        )
        result.sent += 1
        print(f"[Discord] Sent announce msg for {event.streamer_id} to {dest.label()}")

    async def _edit_live(
        self,
        event: StreamEvent,
        dest: Destination,
        key: NotificationKey,
        record: NotificationRecord,
        now: datetime,
        result: PassResult,
    ) -> None:
        try:
            await self._call(self.transport.fetch(dest, record.message_ref))
            await self._call(self.transport.edit(dest, record.message_ref, live_content(event), event))
        except MessageNotFound:
            print(f"[Discord] announce msg for {event.streamer_id} in {dest.label()} is gone; posting a new one")
            await self.history.delete_record(key)
            result.stale_recovered += 1
            await self._create(event, dest, key, now, result)
            return
        except PermissionDenied as e:
            result.mark_denied(dest)
            print(f"[Discord] Permission denied editing in {dest.label()}: {e}")
            return
        except TransportError as e:
            result.failed += 1
            print(f"[Discord] Message edit problem in {dest.label()}: {e}")
            return

        await self.history.touch_record(key, now)
        result.edited += 1
        print(f"[Discord] Updated announce msg for {event.streamer_id} in {dest.label()}")

    async def _retire(
        self,
        event: StreamEvent,
        dest: Destination,
        key: NotificationKey,
        record: NotificationRecord,
        now: datetime,
        result: PassResult,
    ) -> None:
        try:
            await self._call(self.transport.edit(dest, record.message_ref, ended_content(event), event))
        except MessageNotFound:
            print(f"[Discord] announce msg for {event.streamer_id} in {dest.label()} is gone; nothing to retire")
            await self.history.delete_record(key)
            result.stale_recovered += 1
            return
        except PermissionDenied as e:
            result.mark_denied(dest)
            print(f"[Discord] Permission denied retiring msg in {dest.label()}: {e}")
            return
        except TransportError as e:
            result.failed += 1
            print(f"[Discord] Message edit problem in {dest.label()}: {e}")
            return

        await self.history.touch_record(key, now, retire=True)
        result.retired += 1
        print(f"[Discord] Marked announce msg for {event.streamer_id} as ended in {dest.label()}")
