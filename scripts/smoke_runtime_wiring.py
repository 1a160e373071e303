from __future__ import annotations

import asyncio
import importlib
import sqlite3
from pathlib import Path


async def _noop_loop(**kwargs):
    return None


class _DummyTransport:
    async def send(self, destination, content, event):
        return "1"

    async def fetch(self, destination, message_ref):
        return None

    async def edit(self, destination, message_ref, content, event):
        return None


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install requirements and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


def _main() -> int:
    if not _try_import_or_skip("discord", "discord.py"):
        return 0
    if not _try_import_or_skip("aiohttp"):
        return 0

    import discord
    from discord.ext import commands
    from db.migrate import apply_sqlite_migrations
    from misc.channel_sync import make_destination_lister
    from misc.runtime_wiring import wire_bot_runtime
    from streams.engine import build_stream_engine

    intents = discord.Intents.none()
    bot = commands.Bot(command_prefix="!", intents=intents)
    db_conn = sqlite3.connect(":memory:", check_same_thread=False)
    apply_sqlite_migrations(db_conn, str(Path(__file__).resolve().parents[1] / "migrations"))

    engine = build_stream_engine(
        db_lock=asyncio.Lock(),
        db_conn=db_conn,
        transport=_DummyTransport(),
        list_destinations=make_destination_lister(bot, channel_name="live-streams"),
    )
    wire_bot_runtime(
        bot,
        engine=engine,
        monitor=None,
        announce_channel_name="live-streams",
        presence_refresh_seconds=300,
        gc_seconds=3600,
        poll_seconds=90,
        presence_refresh_loop_func=_noop_loop,
        retention_loop_func=_noop_loop,
        poll_loop_func=_noop_loop,
    )

    expected_events = {"on_ready", "on_guild_join", "on_guild_remove"}
    missing = sorted(name for name in expected_events if not hasattr(bot, name))
    if missing:
        raise RuntimeError(f"Runtime events were not registered: {missing}")

    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
