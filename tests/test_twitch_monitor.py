from __future__ import annotations

import unittest
from datetime import datetime, timezone

try:
    from streams.twitch_monitor import TwitchMonitor
except ModuleNotFoundError:
    TwitchMonitor = None


T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class _NullSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


if TwitchMonitor is not None:
    class _StubMonitor(TwitchMonitor):
        def __init__(self, **kwargs):
            super().__init__(**kwargs)
            self.users = {
                "nova": {"login": "nova", "display_name": "Nova", "profile_image_url": "https://img/nova.png"},
                "ember": {"login": "ember", "display_name": "Ember"},
            }
            self.live: dict[str, dict] = {}
            self.user_requests: list[list[str]] = []
            self.game_requests: list[list[str]] = []

        def _open_session(self):
            return _NullSession()

        async def fetch_users(self, session, logins):
            self.user_requests.append(list(logins))
            return [self.users[login] for login in logins if login in self.users]

        async def fetch_streams(self, session, logins):
            return [self.live[login] for login in logins if login in self.live]

        async def fetch_games(self, session, game_ids):
            self.game_requests.append(list(game_ids))
            return [{"id": gid, "name": f"Game {gid}", "box_art_url": "https://img/box-{width}x{height}.jpg"} for gid in game_ids]
else:  # pragma: no cover
    _StubMonitor = object


def _stream(login: str, *, viewers: int = 10, game_id: str = "1") -> dict:
    return {
        "type": "live",
        "user_login": login,
        "user_name": login.title(),
        "game_id": game_id,
        "title": f"{login} stream",
        "viewer_count": viewers,
        "started_at": "2026-03-01T11:00:00Z",
        "thumbnail_url": f"https://img/live_{login}-{{width}}x{{height}}.jpg",
    }


@unittest.skipIf(TwitchMonitor is None, "aiohttp not installed")
class TwitchMonitorTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.live_events = []
        self.offline_events = []

        async def on_live(event):
            self.live_events.append(event)

        async def on_offline(event):
            self.offline_events.append(event)

        self.monitor = _StubMonitor(
            client_id="cid",
            client_secret="secret",
            channels=["Nova", "ember", "nova", " "],
            on_live_update=on_live,
            on_offline=on_offline,
        )

    def test_channels_are_normalized(self):
        self.assertEqual(self.monitor.channels, ["ember", "nova"])
        self.assertIsNone(self.monitor.disabled_reason())

    def test_missing_credentials_disable_polling(self):
        monitor = TwitchMonitor(
            client_id="",
            client_secret="",
            channels=["nova"],
            on_live_update=None,
            on_offline=None,
        )
        self.assertIsNotNone(monitor.disabled_reason())

    async def test_live_reported_every_poll_offline_once(self):
        self.monitor.live["nova"] = _stream("nova", viewers=120)
        await self.monitor.poll_once(T0)
        self.monitor.live["nova"] = _stream("nova", viewers=150)
        await self.monitor.poll_once(T0)
        self.assertEqual([e.viewer_count for e in self.live_events], [120, 150])
        self.assertEqual(self.live_events[0].display_name, "Nova")
        self.assertEqual(self.live_events[0].game_name, "Game 1")
        self.assertEqual(self.live_events[0].profile_image_ref, "https://img/nova.png")

        del self.monitor.live["nova"]
        await self.monitor.poll_once(T0)
        await self.monitor.poll_once(T0)
        self.assertEqual(len(self.offline_events), 1)
        self.assertFalse(self.offline_events[0].is_live)
        self.assertEqual(self.offline_events[0].title, "nova stream")
        self.assertEqual(self.monitor.live_channels(), [])

    async def test_users_and_games_are_cached(self):
        self.monitor.live["nova"] = _stream("nova", game_id="7")
        await self.monitor.poll_once(T0)
        await self.monitor.poll_once(T0)
        self.assertEqual(self.monitor.user_requests, [["ember", "nova"]])
        self.assertEqual(self.monitor.game_requests, [["7"]])

    async def test_callback_error_does_not_stop_other_channels(self):
        async def explode(event):
            if event.streamer_id == "ember":
                raise RuntimeError("boom")
            self.live_events.append(event)

        self.monitor.on_live_update = explode
        self.monitor.live["ember"] = _stream("ember")
        self.monitor.live["nova"] = _stream("nova")
        reported = await self.monitor.poll_once(T0)
        self.assertEqual(len(reported), 2)
        self.assertEqual([e.streamer_id for e in self.live_events], ["nova"])

    async def test_non_live_entries_are_ignored(self):
        rerun = _stream("nova")
        rerun["type"] = ""
        self.monitor.live["nova"] = rerun
        self.assertEqual(await self.monitor.poll_once(T0), [])
        self.assertEqual(self.live_events, [])


if __name__ == "__main__":
    unittest.main()
