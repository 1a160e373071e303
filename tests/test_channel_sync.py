from __future__ import annotations

import unittest
from types import SimpleNamespace

from misc.channel_sync import destinations_for_bot
from misc.channel_sync import make_destination_lister
from misc.channel_sync import make_role_lookup
from streams.errors import NotReady


class _FakeChannel:
    def __init__(self, channel_id: int, name: str, *, can_send: bool = True):
        self.id = channel_id
        self.name = name
        self.can_send = can_send

    def permissions_for(self, member):
        return SimpleNamespace(send_messages=self.can_send)


class _FakeBot:
    def __init__(self, guilds, *, ready: bool = True):
        self.guilds = guilds
        self.ready = ready

    def is_ready(self):
        return self.ready

    def get_guild(self, guild_id: int):
        for guild in self.guilds:
            if guild.id == guild_id:
                return guild
        return None


def _guild(guild_id: int, name: str, channels, roles=()):
    return SimpleNamespace(id=guild_id, name=name, text_channels=list(channels), me=object(), roles=list(roles))


class ChannelSyncTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.bot = _FakeBot(
            [
                _guild(1, "Alpha", [_FakeChannel(10, "general"), _FakeChannel(11, "live-streams")]),
                _guild(2, "Beta", [_FakeChannel(20, "general")]),
                _guild(3, "Gamma", [_FakeChannel(30, "Live-Streams", can_send=False)]),
            ]
        )

    def test_finds_named_channel_in_each_guild(self):
        dests = destinations_for_bot(self.bot, channel_name="live-streams")
        self.assertEqual([(d.group_id, d.destination_id) for d in dests], [("1", "11"), ("3", "30")])
        self.assertTrue(dests[0].can_post)
        self.assertFalse(dests[1].can_post)

    def test_group_filter_limits_guilds(self):
        dests = destinations_for_bot(self.bot, channel_name="#live-streams", group_filter={"3"})
        self.assertEqual([d.group_id for d in dests], ["3"])

    def test_not_ready_raises(self):
        self.bot.ready = False
        with self.assertRaises(NotReady):
            destinations_for_bot(self.bot, channel_name="live-streams")

    async def test_async_lister(self):
        lister = make_destination_lister(self.bot, channel_name="live-streams")
        self.assertEqual(len(await lister()), 2)
        self.assertEqual(len(await lister({"1"})), 1)

    def test_role_lookup_by_name_or_id(self):
        bot = _FakeBot(
            [_guild(1, "Alpha", [], roles=[SimpleNamespace(id=900, name="Stream Pings", mention="<@&900>")])]
        )
        lookup = make_role_lookup(bot)
        self.assertEqual(lookup("1", "Stream Pings"), "<@&900>")
        self.assertEqual(lookup("1", "900"), "<@&900>")
        self.assertEqual(lookup("1", "<@&901>"), "<@&901>")
        self.assertIsNone(lookup("1", "Nope"))
        self.assertIsNone(lookup("2", "Stream Pings"))
        self.assertIsNone(lookup("G1", "Stream Pings"))


if __name__ == "__main__":
    unittest.main()
