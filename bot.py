from __future__ import annotations

import asyncio
import os
import sqlite3

import discord
from discord.ext import commands

from config.defaults import DEFAULT_ANNOUNCE_CHANNEL_NAME
from config.defaults import DEFAULT_DB_PATH
from config.defaults import DEFAULT_DEBOUNCE_SECONDS
from config.defaults import DEFAULT_GC_SECONDS
from config.defaults import DEFAULT_MENTIONS_PATH
from config.defaults import DEFAULT_POLL_SECONDS
from config.defaults import DEFAULT_PRESENCE_REFRESH_SECONDS
from config.defaults import DEFAULT_RATE_CEILING
from config.defaults import DEFAULT_RATE_WINDOW_SECONDS
from config.defaults import DEFAULT_RETENTION_HOURS
from config.defaults import DEFAULT_TRANSPORT_TIMEOUT_SECONDS
from db.migrate import apply_sqlite_migrations
from db.migrate import list_applied_migrations_sync
from jobs.streams import poll_loop
from jobs.streams import presence_refresh_loop
from jobs.streams import retention_loop
from misc.channel_sync import make_destination_lister
from misc.channel_sync import make_role_lookup
from misc.discord_transport import DiscordTransport
from misc.discord_transport import make_presence_sink
from misc.live_embed import build_stream_embed
from misc.runtime_wiring import wire_bot_runtime
from streams.engine import build_stream_engine
from streams.mentions import MentionConfig
from streams.twitch_monitor import TwitchMonitor

# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")
if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")

TWITCH_CLIENT_ID = os.getenv("TWITCH_CLIENT_ID", "").strip()
TWITCH_CLIENT_SECRET = os.getenv("TWITCH_CLIENT_SECRET", "").strip()


def parse_str_list(raw: str | None) -> list[str]:
    out: list[str] = []
    for tok in (raw or "").split(","):
        tok = tok.strip().lower()
        if tok and tok not in out:
            out.append(tok)
    return out


def env_number(name: str, default, cast=int):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        print(f"[CFG] invalid {name}={raw!r}; falling back to {default!r}")
        return default
    if value < 0:
        print(f"[CFG] negative {name}={raw!r}; falling back to {default!r}")
        return default
    return value


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


STREAMS_CHANNELS = parse_str_list(os.getenv("STREAMS_CHANNELS"))
DB_PATH = os.getenv("STREAMS_DB_PATH", DEFAULT_DB_PATH)
ANNOUNCE_CHANNEL = os.getenv("STREAMS_ANNOUNCE_CHANNEL", DEFAULT_ANNOUNCE_CHANNEL_NAME).strip() or DEFAULT_ANNOUNCE_CHANNEL_NAME
MENTIONS_PATH = os.getenv("STREAMS_MENTIONS_PATH", DEFAULT_MENTIONS_PATH).strip()

DEBOUNCE_SECONDS = env_number("STREAMS_DEBOUNCE_SECONDS", DEFAULT_DEBOUNCE_SECONDS, float)
RATE_WINDOW_SECONDS = env_number("STREAMS_RATE_WINDOW_SECONDS", DEFAULT_RATE_WINDOW_SECONDS, float)
RATE_CEILING = env_number("STREAMS_RATE_CEILING", DEFAULT_RATE_CEILING)
RETENTION_HOURS = env_number("STREAMS_RETENTION_HOURS", DEFAULT_RETENTION_HOURS, float)
POLL_SECONDS = env_number("STREAMS_POLL_SECONDS", DEFAULT_POLL_SECONDS)
PRESENCE_REFRESH_SECONDS = env_number("STREAMS_PRESENCE_REFRESH_SECONDS", DEFAULT_PRESENCE_REFRESH_SECONDS)
GC_SECONDS = env_number("STREAMS_GC_SECONDS", DEFAULT_GC_SECONDS)
TRANSPORT_TIMEOUT_SECONDS = env_number(
    "STREAMS_TRANSPORT_TIMEOUT_SECONDS", DEFAULT_TRANSPORT_TIMEOUT_SECONDS, float
)
USE_BOXART = env_flag("STREAMS_USE_BOXART")
PRESENCE_CLEAR_ON_OFFLINE = env_flag("STREAMS_PRESENCE_CLEAR_ON_OFFLINE")

print(
    f"[CFG] channels={len(STREAMS_CHANNELS)} announce_channel=#{ANNOUNCE_CHANNEL} "
    f"debounce_s={DEBOUNCE_SECONDS} rate={RATE_CEILING}/{RATE_WINDOW_SECONDS}s "
    f"retention_h={RETENTION_HOURS} poll_s={POLL_SECONDS} boxart={USE_BOXART}"
)
if DEBOUNCE_SECONDS >= POLL_SECONDS:
    print(
        f"[CFG] debounce window ({DEBOUNCE_SECONDS}s) is not shorter than the poll interval "
        f"({POLL_SECONDS}s); live refreshes will be suppressed"
    )

# =========================
# SQLITE
# =========================
def init_db(db_path: str) -> sqlite3.Connection:
    # check_same_thread=False because discord.py event loop + to_thread usage
    conn = sqlite3.connect(db_path, check_same_thread=False)
    cur = conn.cursor()
    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    repo_root = os.path.dirname(os.path.abspath(__file__))
    apply_sqlite_migrations(conn, os.path.join(repo_root, "migrations"))
    for version, name, applied_at in list_applied_migrations_sync(conn, limit=5):
        print(f"[DB] migration {version}_{name} applied_at={applied_at}")
    conn.commit()
    return conn


db_conn = init_db(DB_PATH)
print(f"[DB] Using DB_PATH={DB_PATH}")
db_lock = asyncio.Lock()

# =========================
# DISCORD
# =========================
intents = discord.Intents.default()
bot = commands.Bot(command_prefix="!", intents=intents)

engine = build_stream_engine(
    db_lock=db_lock,
    db_conn=db_conn,
    transport=DiscordTransport(bot, embed_builder=lambda event: build_stream_embed(event, use_boxart=USE_BOXART)),
    list_destinations=make_destination_lister(bot, channel_name=ANNOUNCE_CHANNEL),
    mention_config=MentionConfig(MENTIONS_PATH or None),
    role_lookup=make_role_lookup(bot),
    presence_sink=make_presence_sink(bot),
    debounce_seconds=DEBOUNCE_SECONDS,
    rate_window_seconds=RATE_WINDOW_SECONDS,
    rate_ceiling=RATE_CEILING,
    retention_hours=RETENTION_HOURS,
    transport_timeout=TRANSPORT_TIMEOUT_SECONDS,
    presence_clear_on_offline=PRESENCE_CLEAR_ON_OFFLINE,
)

monitor = None
if TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET and STREAMS_CHANNELS:
    monitor = TwitchMonitor(
        client_id=TWITCH_CLIENT_ID,
        client_secret=TWITCH_CLIENT_SECRET,
        channels=STREAMS_CHANNELS,
        on_live_update=engine.handle_live_update,
        on_offline=engine.handle_offline,
    )
else:
    print("[CFG] Twitch polling disabled (set TWITCH_CLIENT_ID, TWITCH_CLIENT_SECRET and STREAMS_CHANNELS)")

wire_bot_runtime(
    bot,
    engine=engine,
    monitor=monitor,
    announce_channel_name=ANNOUNCE_CHANNEL,
    presence_refresh_seconds=PRESENCE_REFRESH_SECONDS,
    gc_seconds=GC_SECONDS,
    poll_seconds=POLL_SECONDS,
    presence_refresh_loop_func=presence_refresh_loop,
    retention_loop_func=retention_loop,
    poll_loop_func=poll_loop,
)


bot.run(DISCORD_TOKEN)
