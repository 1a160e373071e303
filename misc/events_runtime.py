from __future__ import annotations

import asyncio

from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from streams.errors import NotReady


def _sync_server_list(deps: RuntimeDeps, *, verbose: bool) -> int:
    try:
        return len(deps.sync_destinations(verbose=verbose))
    except NotReady as e:
        print(f"[Discord] server sync skipped: {e}")
    except Exception as e:
        print(f"[Discord] Error fetching channels: {e}")
    return 0


def register_runtime_events(bot, *, deps: RuntimeDeps, boot: RuntimeBootDeps) -> None:
    @bot.event
    async def on_ready():
        guilds = list(getattr(bot, "guilds", []) or [])
        print(f"[Discord] Bot has started as {bot.user}, in {len(guilds)} guilds.")
        found = _sync_server_list(deps, verbose=True)
        if not found:
            print(f"[Discord] no #{deps.announce_channel_name} channel found yet; announcements will wait")

        # presence is reset by the gateway on reconnect
        try:
            await deps.engine.refresh_presence()
        except Exception as e:
            print(f"[StreamActivity] refresh on ready failed: {e}")

        if not getattr(bot, "_presence_task", None):
            bot._presence_task = asyncio.create_task(boot.presence_refresh_loop_func())
            print("[StreamActivity] refresh loop started")

        if not getattr(bot, "_retention_task", None):
            bot._retention_task = asyncio.create_task(boot.retention_loop_func())
            print("[Streams] retention loop started")

        if boot.poll_enabled and not getattr(bot, "_poll_task", None):
            bot._poll_task = asyncio.create_task(boot.poll_loop_func())
            print("[Twitch] poll loop started")

    @bot.event
    async def on_guild_join(guild):
        print(f"[Discord] Joined new server: {guild.name}")
        _sync_server_list(deps, verbose=False)

    @bot.event
    async def on_guild_remove(guild):
        print(f"[Discord] Removed from a server: {guild.name}")
        _sync_server_list(deps, verbose=False)
