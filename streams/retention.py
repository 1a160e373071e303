from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from config.defaults import DEFAULT_RETENTION_HOURS
from streams.state_store import HistoryMap


class GarbageCollector:
    """Evicts notification records whose last activity is a full retention window old."""

    def __init__(self, history, *, retention_hours: float = DEFAULT_RETENTION_HOURS) -> None:
        self.history = history
        self.retention = timedelta(hours=max(0.0, float(retention_hours)))

    async def sweep(self, now: datetime, *, busy_streamers: Iterable[str] = ()) -> int:
        cutoff = now - self.retention
        busy = {str(s) for s in busy_streamers}

        def _prune(history: HistoryMap) -> int:
            stale = [
                key
                for key, rec in history.items()
                if rec.last_activity() <= cutoff and key.streamer_id not in busy
            ]
            for key in stale:
                del history[key]
            return len(stale)

        removed = await self.history.update(_prune)
        if removed:
            print(f"[Streams] retention sweep evicted {removed} record(s)")
        return removed
