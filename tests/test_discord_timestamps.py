from __future__ import annotations

import unittest
from datetime import datetime
from datetime import timedelta
from datetime import timezone

from misc.discord_timestamps import format_discord_timestamp
from misc.discord_timestamps import humanize_duration
from misc.discord_timestamps import uptime_text


class DiscordTimestampHelperTests(unittest.TestCase):
    def test_format_discord_timestamp_aware_datetime(self):
        dt = datetime(2026, 2, 2, 13, 30, tzinfo=timezone.utc)
        self.assertEqual(format_discord_timestamp(dt, style="R"), f"<t:{int(dt.timestamp())}:R>")

    def test_format_discord_timestamp_rejects_naive_datetime(self):
        with self.assertRaises(ValueError):
            format_discord_timestamp(datetime(2026, 1, 1, 0, 0), style="f")

    def test_format_discord_timestamp_rejects_unknown_style(self):
        with self.assertRaises(ValueError):
            format_discord_timestamp(datetime(2026, 1, 1, tzinfo=timezone.utc), style="x")

    def test_humanize_duration_two_largest_units(self):
        self.assertEqual(humanize_duration(2 * 3600 + 5 * 60), "2 hours, 5 minutes")
        self.assertEqual(humanize_duration(26 * 3600), "1 day, 2 hours")
        self.assertEqual(humanize_duration(60), "1 minute")

    def test_humanize_duration_below_a_minute(self):
        self.assertEqual(humanize_duration(29), "0 minutes")
        self.assertEqual(humanize_duration(30), "1 minute")
        self.assertEqual(humanize_duration(-5), "0 minutes")

    def test_humanize_duration_rounding_carries_into_larger_unit(self):
        self.assertEqual(humanize_duration(2 * 3600 + 59 * 60 + 50), "3 hours")
        self.assertEqual(humanize_duration(86400 + 23 * 3600 + 50 * 60), "2 days")
        self.assertEqual(humanize_duration(59 * 60 + 45), "1 hour")
        self.assertEqual(humanize_duration(3600 + 29 * 60 + 20), "1 hour, 29 minutes")

    def test_uptime_text(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        started = now - timedelta(hours=1, minutes=30)
        self.assertEqual(uptime_text(started, now), f"1 hour, 30 minutes (<t:{int(started.timestamp())}:R>)")
        self.assertEqual(uptime_text(None, now), "unknown")


if __name__ == "__main__":
    unittest.main()
