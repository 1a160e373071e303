from __future__ import annotations

import asyncio

from streams.twitch_monitor import run_monitor_forever


async def presence_refresh_loop(
    *,
    engine,
    interval_seconds: int = 300,
) -> None:
    while True:
        await asyncio.sleep(max(10, int(interval_seconds)))
        try:
            await engine.refresh_presence()
        except Exception as e:
            print(f"[StreamActivity] refresh loop error: {e}")


async def retention_loop(
    *,
    engine,
    interval_seconds: int = 3600,
) -> None:
    while True:
        try:
            await engine.sweep()
        except Exception as e:
            print(f"[Streams] retention loop error: {e}")
        await asyncio.sleep(max(10, int(interval_seconds)))


async def poll_loop(
    *,
    monitor,
    interval_seconds: int = 90,
) -> None:
    await run_monitor_forever(monitor, interval_seconds=interval_seconds)
