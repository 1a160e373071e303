from __future__ import annotations

from typing import Awaitable, Callable

from streams.models import StreamEvent


PresenceSink = Callable[[StreamEvent | None], Awaitable[None]]


class PresenceIndicator:
    """Tracks live streamers and pushes the one to show as the bot's activity.

    Display choice is the most recently *registered* live streamer. A streamer
    that is already registered keeps its position when it reports again.
    """

    def __init__(self, *, sink: PresenceSink | None = None, clear_on_offline: bool = False) -> None:
        self.sink = sink
        self.clear_on_offline = bool(clear_on_offline)
        self._online: dict[str, StreamEvent] = {}

    def online_streamers(self) -> list[str]:
        return list(self._online.keys())

    def current_display(self) -> StreamEvent | None:
        if not self._online:
            return None
        return next(reversed(self._online.values()))

    async def set_online(self, streamer_id: str, event: StreamEvent) -> None:
        self._online[str(streamer_id)] = event
        await self.refresh()

    async def set_offline(self, streamer_id: str) -> None:
        if self.clear_on_offline:
            self._online.clear()
        else:
            self._online.pop(str(streamer_id), None)
        await self.refresh()

    async def clear_all(self) -> None:
        self._online.clear()
        await self.refresh()

    async def refresh(self) -> None:
        display = self.current_display()
        if self.sink is None:
            return
        try:
            await self.sink(display)
        except Exception as e:
            print(f"[StreamActivity] update failed: {e}")
            return
        if display is not None:
            print(f"[StreamActivity] Update current activity: watching {display.display_name}.")
        else:
            print("[StreamActivity] Cleared current activity.")
