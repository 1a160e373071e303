from __future__ import annotations

# Announcement target: every guild's text channel with this name.
DEFAULT_ANNOUNCE_CHANNEL_NAME = "live-streams"

DEFAULT_DB_PATH = "stream_announcer.db"
DEFAULT_MENTIONS_PATH = "config/stream_mentions.yml"

# Reconciliation engine
DEFAULT_DEBOUNCE_SECONDS = 60
DEFAULT_RATE_WINDOW_SECONDS = 60
DEFAULT_RATE_CEILING = 5
DEFAULT_RETENTION_HOURS = 24
DEFAULT_TRANSPORT_TIMEOUT_SECONDS = 15.0
HISTORY_STATE_KEY = "history"

# Timers
DEFAULT_POLL_SECONDS = 90
DEFAULT_PRESENCE_REFRESH_SECONDS = 5 * 60
DEFAULT_GC_SECONDS = 60 * 60

# Twitch Helix
TWITCH_API_BASE = "https://api.twitch.tv/helix"
TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
TWITCH_BOXART_SIZE = (288, 384)
TWITCH_PREVIEW_SIZE = (1280, 720)

LIVE_EMBED_COLOR = 0x9146FF
ENDED_EMBED_COLOR = 0x808080
