from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class RuntimeDeps:
    # streams
    engine: Any
    announce_channel_name: str
    sync_destinations: Callable[..., list]


@dataclass(frozen=True)
class RuntimeBootDeps:
    presence_refresh_loop_func: Callable
    retention_loop_func: Callable
    poll_enabled: bool
    poll_loop_func: Callable
