from __future__ import annotations

from config.defaults import DEFAULT_DEBOUNCE_SECONDS


class DebounceGate:
    """Drops a repeat of the same streamer state seen within the window.

    Entries are never swept; an old entry simply stops matching.
    """

    def __init__(self, *, window_seconds: float = DEFAULT_DEBOUNCE_SECONDS) -> None:
        self.window_seconds = max(0.0, float(window_seconds))
        self._accepted: dict[str, tuple[float, bool]] = {}

    def accept(self, streamer_id: str, now: float, is_live: bool = True) -> bool:
        key = str(streamer_id).strip().lower()
        prev = self._accepted.get(key)
        if prev is not None:
            last_at, last_is_live = prev
            if last_is_live == bool(is_live) and (float(now) - last_at) < self.window_seconds:
                return False
        self._accepted[key] = (float(now), bool(is_live))
        return True

    def forget(self, streamer_id: str) -> None:
        self._accepted.pop(str(streamer_id).strip().lower(), None)

    def clear(self) -> None:
        self._accepted.clear()
