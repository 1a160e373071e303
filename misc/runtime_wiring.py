from __future__ import annotations

from misc.channel_sync import destinations_for_bot
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps


def wire_bot_runtime(
    bot,
    *,
    engine,
    monitor,
    announce_channel_name: str,
    group_filter=None,
    presence_refresh_seconds: int,
    gc_seconds: int,
    poll_seconds: int,
    presence_refresh_loop_func,
    retention_loop_func,
    poll_loop_func,
) -> None:
    def sync_destinations(*, verbose: bool = False):
        return destinations_for_bot(
            bot,
            channel_name=announce_channel_name,
            group_filter=group_filter,
            verbose=verbose,
        )

    async def presence_refresh_loop():
        return await presence_refresh_loop_func(engine=engine, interval_seconds=presence_refresh_seconds)

    async def retention_loop():
        return await retention_loop_func(engine=engine, interval_seconds=gc_seconds)

    async def poll_loop():
        return await poll_loop_func(monitor=monitor, interval_seconds=poll_seconds)

    register_runtime_events(
        bot,
        deps=RuntimeDeps(
            engine=engine,
            announce_channel_name=announce_channel_name,
            sync_destinations=sync_destinations,
        ),
        boot=RuntimeBootDeps(
            presence_refresh_loop_func=presence_refresh_loop,
            retention_loop_func=retention_loop,
            poll_enabled=monitor is not None,
            poll_loop_func=poll_loop,
        ),
    )
