from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

import yaml

from streams.errors import MentionResolutionError
from streams.mentions import MentionConfig
from streams.mentions import MentionResolver
from streams.mentions import normalize_mention_config
from streams.models import Destination


G1 = Destination(group_id="111", destination_id="chanA")
G2 = Destination(group_id="222", destination_id="chanB")


def _roles(mapping: dict[str, dict[str, str]]):
    def lookup(group_id: str, role_name: str):
        return mapping.get(group_id, {}).get(role_name)

    return lookup


class NormalizeMentionConfigTests(unittest.TestCase):
    def test_wrapper_and_bare_mapping_are_equivalent(self):
        bare = {"Nova": {"default": "here", "server_specific": {111: "Stream Pings"}}}
        self.assertEqual(normalize_mention_config({"streams": bare}), normalize_mention_config(bare))
        out = normalize_mention_config(bare)
        self.assertEqual(out["nova"]["default"], "here")
        self.assertEqual(out["nova"]["server_specific"], {"111": "Stream Pings"})

    def test_shorthand_entry(self):
        self.assertEqual(normalize_mention_config({"nova": "@everyone"})["nova"]["default"], "everyone")

    def test_garbage_is_empty(self):
        self.assertEqual(normalize_mention_config(None), {})
        self.assertEqual(normalize_mention_config(["nova"]), {})


class MentionResolverTests(unittest.TestCase):
    def test_server_specific_wins_over_default(self):
        resolver = MentionResolver(role_lookup=_roles({"222": {"Stream Pings": "<@&900>"}}))
        config = {"nova": {"default": "here", "server_specific": {"222": "Stream Pings"}}}
        self.assertEqual(resolver.resolve("nova", G2, config), "<@&900>")
        self.assertEqual(resolver.resolve("nova", G1, config), "@here")

    def test_broadcast_tokens(self):
        resolver = MentionResolver()
        self.assertEqual(resolver.resolve("nova", G1, {"nova": {"default": "everyone"}}), "@everyone")
        self.assertEqual(resolver.resolve("nova", G1, {"nova": {"default": "HERE"}}), "@here")

    def test_none_suppresses_even_with_default(self):
        resolver = MentionResolver()
        config = {"nova": {"default": "here", "server_specific": {"111": "none"}}}
        self.assertIsNone(resolver.resolve("nova", G1, config))

    def test_unconfigured_streamer_gets_no_mention(self):
        self.assertIsNone(MentionResolver().resolve("ember", G1, {"nova": {"default": "here"}}))
        self.assertIsNone(MentionResolver().resolve("ember", G1, None))

    def test_streamer_key_is_case_insensitive(self):
        self.assertEqual(MentionResolver().resolve("NoVa", G1, {"nova": {"default": "here"}}), "@here")

    def test_unknown_role_falls_back_to_no_mention(self):
        resolver = MentionResolver(role_lookup=_roles({}))
        self.assertIsNone(resolver.resolve("nova", G1, {"nova": {"default": "Missing Role"}}))

    def test_role_without_directory_falls_back(self):
        self.assertIsNone(MentionResolver().resolve("nova", G1, {"nova": {"default": "Stream Pings"}}))

    def test_failing_role_lookup_never_raises(self):
        def boom(group_id, role_name):
            raise MentionResolutionError("guild not cached")

        def crash(group_id, role_name):
            raise RuntimeError("oops")

        config = {"nova": {"default": "Stream Pings"}}
        self.assertIsNone(MentionResolver(role_lookup=boom).resolve("nova", G1, config))
        self.assertIsNone(MentionResolver(role_lookup=crash).resolve("nova", G1, config))


class MentionConfigFileTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "stream_mentions.yml"

    def tearDown(self):
        self.tmp.cleanup()

    def _write(self, payload, *, mtime: float):
        self.path.write_text(yaml.safe_dump(payload), encoding="utf-8")
        os.utime(self.path, (mtime, mtime))

    def test_missing_file_uses_initial_data(self):
        config = MentionConfig(str(self.path), initial={"nova": "here"})
        self.assertEqual(config.entry("nova")["default"], "here")

    def test_reloads_when_file_changes(self):
        self._write({"streams": {"nova": {"default": "here"}}}, mtime=1_700_000_000)
        config = MentionConfig(str(self.path))
        self.assertEqual(config.entry("nova")["default"], "here")
        self._write({"streams": {"nova": {"default": "everyone"}}}, mtime=1_700_000_100)
        self.assertEqual(config.entry("nova")["default"], "everyone")

    def test_unreadable_yaml_keeps_previous_config(self):
        self._write({"streams": {"nova": {"default": "here"}}}, mtime=1_700_000_000)
        config = MentionConfig(str(self.path))
        self.assertEqual(config.entry("nova")["default"], "here")
        self.path.write_text("streams: [unclosed", encoding="utf-8")
        os.utime(self.path, (1_700_000_100, 1_700_000_100))
        self.assertEqual(config.entry("nova")["default"], "here")

    def test_runtime_changes_are_written_back(self):
        config = MentionConfig(str(self.path))
        config.set_default("Nova", "@here")
        config.set_server_specific("nova", "111", "Stream Pings")
        saved = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        self.assertEqual(saved["streams"]["nova"]["default"], "here")
        self.assertEqual(saved["streams"]["nova"]["server_specific"], {"111": "Stream Pings"})

        config.set_server_specific("nova", "111", None)
        self.assertEqual(MentionConfig(str(self.path)).entry("nova")["server_specific"], {})

        config.clear("nova")
        self.assertIsNone(MentionConfig(str(self.path)).entry("nova"))

    def test_resolver_reads_mention_config(self):
        config = MentionConfig(initial={"nova": {"default": "everyone"}})
        self.assertEqual(MentionResolver().resolve("nova", G1, config), "@everyone")


if __name__ == "__main__":
    unittest.main()
