from __future__ import annotations

from datetime import datetime, timedelta

from config.defaults import DEFAULT_RATE_CEILING
from config.defaults import DEFAULT_RATE_WINDOW_SECONDS


class RateLimiter:
    """Caps new notifications per destination group over a rolling window.

    The count is derived from the persisted records' created_at, so edits of
    existing notifications never consume the budget.
    """

    def __init__(
        self,
        history,
        *,
        window_seconds: float = DEFAULT_RATE_WINDOW_SECONDS,
        ceiling: int = DEFAULT_RATE_CEILING,
    ) -> None:
        self.history = history
        self.window_seconds = max(0.0, float(window_seconds))
        self.ceiling = max(0, int(ceiling))

    async def created_in_window(self, group_id: str, now: datetime) -> int:
        cutoff = now - timedelta(seconds=self.window_seconds)
        records = await self.history.records_for_group(group_id)
        return sum(1 for rec in records if cutoff < rec.created_at <= now)

    async def allow_new_notification(self, group_id: str, now: datetime) -> bool:
        return (await self.created_in_window(group_id, now)) < self.ceiling
