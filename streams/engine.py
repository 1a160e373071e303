from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Sequence

from config.defaults import DEFAULT_DEBOUNCE_SECONDS
from config.defaults import DEFAULT_RATE_CEILING
from config.defaults import DEFAULT_RATE_WINDOW_SECONDS
from config.defaults import DEFAULT_RETENTION_HOURS
from config.defaults import DEFAULT_TRANSPORT_TIMEOUT_SECONDS
from streams.debounce import DebounceGate
from streams.errors import NotReady
from streams.errors import StoreUnavailable
from streams.lifecycle import NotificationLifecycleManager
from streams.lifecycle import PassResult
from streams.mentions import MentionResolver
from streams.models import Destination
from streams.models import StreamEvent
from streams.models import utc_now
from streams.presence import PresenceIndicator
from streams.rate_limit import RateLimiter
from streams.retention import GarbageCollector
from streams.state_store import NotificationHistory
from streams.state_store import SqliteStateStore


ListDestinations = Callable[[Any], Awaitable[Sequence[Destination]]]


class StreamAnnouncementEngine:
    """Owns all reconciliation state for one bot process.

    Passes for one streamer run one at a time; passes for different streamers
    may overlap since they touch disjoint records.
    """

    def __init__(
        self,
        *,
        list_destinations: ListDestinations,
        debounce: DebounceGate,
        presence: PresenceIndicator,
        lifecycle: NotificationLifecycleManager,
        garbage_collector: GarbageCollector,
        group_filter: Any = None,
    ) -> None:
        self.list_destinations = list_destinations
        self.debounce = debounce
        self.presence = presence
        self.lifecycle = lifecycle
        self.garbage_collector = garbage_collector
        self.group_filter = group_filter
        self._streamer_locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, streamer_id: str) -> asyncio.Lock:
        key = str(streamer_id)
        lock = self._streamer_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._streamer_locks[key] = lock
        return lock

    def busy_streamers(self) -> list[str]:
        return [s for s, lock in self._streamer_locks.items() if lock.locked()]

    async def _fetch_destinations(self) -> list[Destination] | None:
        try:
            return list(await self.list_destinations(self.group_filter) or [])
        except NotReady as e:
            print(f"[Discord] destinations unavailable, client not ready: {e}")
        except Exception as e:
            print(f"[Discord] Error fetching channels: {e}")
        return None

    async def _update_presence(self, event: StreamEvent) -> None:
        try:
            if event.is_live:
                await self.presence.set_online(event.streamer_id, event)
            else:
                await self.presence.set_offline(event.streamer_id)
        except Exception as e:
            print(f"[StreamActivity] presence update error: {e}")

    async def handle_event(self, event: StreamEvent, now: datetime | None = None) -> PassResult | None:
        now = now or utc_now()
        if not self.debounce.accept(event.streamer_id, now.timestamp(), event.is_live):
            print(f"[Streams] debounced {'live' if event.is_live else 'offline'} event for {event.streamer_id}")
            return None

        async with self._lock_for(event.streamer_id):
            await self._update_presence(event)
            destinations = await self._fetch_destinations()
            if destinations is None:
                return None
            result = await self.lifecycle.reconcile(event, destinations, now)
            print(
                f"[Streams] {event.streamer_id} {'live' if event.is_live else 'offline'} "
                f"pass over {result.destinations} destination(s): {result.summary()}"
            )

        await self.sweep(now)
        return result

    async def handle_live_update(self, event: StreamEvent) -> PassResult | None:
        if not event.is_live:
            return await self.handle_offline(event)
        try:
            return await self.handle_event(event)
        except Exception as e:
            print(f"[Streams] live update for {event.streamer_id} failed: {e}")
            return None

    async def handle_offline(self, event: StreamEvent) -> PassResult | None:
        if event.is_live:
            event = event.as_offline()
        try:
            return await self.handle_event(event)
        except Exception as e:
            print(f"[Streams] offline update for {event.streamer_id} failed: {e}")
            return None

    async def sweep(self, now: datetime | None = None) -> int:
        try:
            return await self.garbage_collector.sweep(now or utc_now(), busy_streamers=self.busy_streamers())
        except StoreUnavailable as e:
            print(f"[Streams] retention sweep skipped: {e}")
            return 0

    async def refresh_presence(self) -> None:
        await self.presence.refresh()


def build_stream_engine(
    *,
    db_lock,
    db_conn,
    transport,
    list_destinations: ListDestinations,
    mention_config=None,
    role_lookup=None,
    presence_sink=None,
    group_filter: Any = None,
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    rate_window_seconds: float = DEFAULT_RATE_WINDOW_SECONDS,
    rate_ceiling: int = DEFAULT_RATE_CEILING,
    retention_hours: float = DEFAULT_RETENTION_HOURS,
    transport_timeout: float = DEFAULT_TRANSPORT_TIMEOUT_SECONDS,
    presence_clear_on_offline: bool = False,
) -> StreamAnnouncementEngine:
    history = NotificationHistory(SqliteStateStore(db_lock=db_lock, db_conn=db_conn))
    lifecycle = NotificationLifecycleManager(
        history=history,
        transport=transport,
        rate_limiter=RateLimiter(history, window_seconds=rate_window_seconds, ceiling=rate_ceiling),
        mention_resolver=MentionResolver(role_lookup=role_lookup),
        mention_config=mention_config,
        transport_timeout=transport_timeout,
    )
    return StreamAnnouncementEngine(
        list_destinations=list_destinations,
        debounce=DebounceGate(window_seconds=debounce_seconds),
        presence=PresenceIndicator(sink=presence_sink, clear_on_offline=presence_clear_on_offline),
        lifecycle=lifecycle,
        garbage_collector=GarbageCollector(history, retention_hours=retention_hours),
        group_filter=group_filter,
    )
