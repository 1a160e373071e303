from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Any, Awaitable, Callable

import aiohttp

from config.defaults import TWITCH_API_BASE
from config.defaults import TWITCH_TOKEN_URL
from streams.models import StreamEvent
from streams.models import utc_now


EventCallback = Callable[[StreamEvent], Awaitable[Any]]
HELIX_PAGE_SIZE = 100


def _chunks(items: list[str], size: int = HELIX_PAGE_SIZE) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class TwitchMonitor:
    """Polls Twitch Helix for the configured channels.

    Every poll reports each live channel through `on_live_update` (so viewer
    counts and titles stay fresh), and reports `on_offline` once when a channel
    that was live is no longer returned.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        channels: list[str],
        on_live_update: EventCallback,
        on_offline: EventCallback,
        timeout_seconds: float = 10.0,
        api_base: str = TWITCH_API_BASE,
        token_url: str = TWITCH_TOKEN_URL,
    ) -> None:
        self.client_id = (client_id or "").strip()
        self.client_secret = (client_secret or "").strip()
        self.channels = sorted({str(c).strip().lower() for c in (channels or []) if str(c).strip()})
        self.on_live_update = on_live_update
        self.on_offline = on_offline
        self.timeout_seconds = float(timeout_seconds)
        self.api_base = api_base.rstrip("/")
        self.token_url = token_url

        self._token: str | None = None
        self._token_expires_at: float = 0.0
        self._users: dict[str, dict[str, Any]] = {}
        self._games: dict[str, dict[str, Any]] = {}
        self._live: dict[str, StreamEvent] = {}

    def disabled_reason(self) -> str | None:
        if not self.client_id or not self.client_secret:
            return "TWITCH_CLIENT_ID / TWITCH_CLIENT_SECRET are not set"
        if not self.channels:
            return "no channels configured"
        return None

    def live_channels(self) -> list[str]:
        return list(self._live.keys())

    def _open_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_seconds))

    async def _access_token(self, session: aiohttp.ClientSession) -> str:
        if self._token and time.time() < self._token_expires_at - 60:
            return self._token
        async with session.post(
            self.token_url,
            params={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
            },
        ) as response:
            if response.status != 200:
                error_text = await response.text()
                raise RuntimeError(f"token request failed: {response.status} - {error_text[:200]}")
            payload = await response.json()
        self._token = str(payload.get("access_token") or "")
        self._token_expires_at = time.time() + float(payload.get("expires_in") or 3600)
        print("[Twitch] obtained app access token")
        return self._token

    async def _helix_get(
        self,
        session: aiohttp.ClientSession,
        path: str,
        params: list[tuple[str, str]],
    ) -> list[dict[str, Any]]:
        for attempt in range(2):
            token = await self._access_token(session)
            headers = {"Client-ID": self.client_id, "Authorization": f"Bearer {token}"}
            async with session.get(f"{self.api_base}/{path}", params=params, headers=headers) as response:
                if response.status == 401 and attempt == 0:
                    self._token = None
                    continue
                if response.status == 429:
                    reset = response.headers.get("Ratelimit-Reset")
                    print(f"[Twitch] rate limit hit on /{path} (reset={reset})")
                    return []
                if response.status != 200:
                    error_text = await response.text()
                    raise RuntimeError(f"/{path} failed: {response.status} - {error_text[:200]}")
                payload = await response.json()
                data = payload.get("data")
                return list(data) if isinstance(data, list) else []
        return []

    async def fetch_users(self, session: aiohttp.ClientSession, logins: list[str]) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for chunk in _chunks(logins):
            out.extend(await self._helix_get(session, "users", [("login", login) for login in chunk]))
        return out

    async def fetch_streams(self, session: aiohttp.ClientSession, logins: list[str]) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for chunk in _chunks(logins):
            params = [("user_login", login) for login in chunk]
            params.append(("first", str(HELIX_PAGE_SIZE)))
            out.extend(await self._helix_get(session, "streams", params))
        return out

    async def fetch_games(self, session: aiohttp.ClientSession, game_ids: list[str]) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for chunk in _chunks(game_ids):
            out.extend(await self._helix_get(session, "games", [("id", gid) for gid in chunk]))
        return out

    async def _refresh_users(self, session: aiohttp.ClientSession) -> None:
        missing = [login for login in self.channels if login not in self._users]
        if not missing:
            return
        for user in await self.fetch_users(session, missing):
            login = str(user.get("login") or "").strip().lower()
            if login:
                self._users[login] = user
        unknown = [login for login in missing if login not in self._users]
        if unknown:
            print(f"[Twitch] unknown channel(s): {', '.join(unknown)}")

    async def _refresh_games(self, session: aiohttp.ClientSession, streams: list[dict[str, Any]]) -> None:
        wanted = sorted(
            {str(s.get("game_id")) for s in streams if s.get("game_id") and str(s.get("game_id")) not in self._games}
        )
        if not wanted:
            return
        for game in await self.fetch_games(session, wanted):
            gid = str(game.get("id") or "")
            if gid:
                self._games[gid] = game

    async def _emit(self, callback: EventCallback, event: StreamEvent) -> None:
        try:
            await callback(event)
        except Exception as e:
            print(f"[Twitch] event handler error for {event.streamer_id}: {e}")

    async def poll_once(self, now: datetime | None = None) -> list[StreamEvent]:
        """Runs one poll; returns the live events that were reported."""
        now = now or utc_now()
        async with self._open_session() as session:
            await self._refresh_users(session)
            streams = await self.fetch_streams(session, self.channels)
            await self._refresh_games(session, streams)

        live_events: list[StreamEvent] = []
        for stream in streams:
            if str(stream.get("type") or "").lower() != "live":
                continue
            login = str(stream.get("user_login") or "").strip().lower()
            user = self._users.get(login) or {"login": login, "display_name": stream.get("user_name") or login}
            game = self._games.get(str(stream.get("game_id") or ""))
            try:
                event = StreamEvent.from_helix(user=user, stream=stream, game=game, observed_at=now)
            except ValueError as e:
                print(f"[Twitch] skipping unreadable stream payload: {e}")
                continue
            live_events.append(event)

        live_now = {e.streamer_id for e in live_events}
        went_offline = [self._live[login] for login in list(self._live) if login not in live_now]

        for event in live_events:
            self._live[event.streamer_id] = event
            await self._emit(self.on_live_update, event)
        for prev in went_offline:
            self._live.pop(prev.streamer_id, None)
            print(f"[Twitch] {prev.display_name} went offline")
            await self._emit(self.on_offline, prev.as_offline(now))
        return live_events


async def run_monitor_forever(monitor: TwitchMonitor, *, interval_seconds: float) -> None:
    reason = monitor.disabled_reason()
    if reason:
        print(f"[Twitch] monitor disabled: {reason}")
        return
    print(f"[Twitch] polling {len(monitor.channels)} channel(s) every {int(interval_seconds)}s")
    while True:
        try:
            await monitor.poll_once()
        except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError) as e:
            print(f"[Twitch] poll failed: {e}")
        except Exception as e:
            print(f"[Twitch] poll loop error: {e}")
        await asyncio.sleep(max(10, int(interval_seconds)))
