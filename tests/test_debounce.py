from __future__ import annotations

import unittest

from streams.debounce import DebounceGate


class DebounceGateTests(unittest.TestCase):
    def test_second_accept_within_window_is_rejected(self):
        gate = DebounceGate(window_seconds=60)
        self.assertEqual((gate.accept("nova", 1000.0), gate.accept("nova", 1010.0)), (True, False))

    def test_accepts_outside_window_both_pass(self):
        gate = DebounceGate(window_seconds=60)
        self.assertEqual((gate.accept("nova", 1000.0), gate.accept("nova", 1061.0)), (True, True))

    def test_exact_window_boundary_is_accepted(self):
        gate = DebounceGate(window_seconds=60)
        gate.accept("nova", 1000.0)
        self.assertTrue(gate.accept("nova", 1060.0))

    def test_rejection_does_not_extend_the_window(self):
        gate = DebounceGate(window_seconds=60)
        gate.accept("nova", 1000.0)
        self.assertFalse(gate.accept("nova", 1050.0))
        self.assertTrue(gate.accept("nova", 1061.0))

    def test_streamers_are_independent(self):
        gate = DebounceGate(window_seconds=60)
        self.assertTrue(gate.accept("nova", 1000.0))
        self.assertTrue(gate.accept("ember", 1001.0))

    def test_streamer_ids_match_case_insensitively(self):
        gate = DebounceGate(window_seconds=60)
        gate.accept("Nova", 1000.0)
        self.assertFalse(gate.accept("nova", 1001.0))

    def test_state_change_is_never_debounced(self):
        gate = DebounceGate(window_seconds=60)
        self.assertTrue(gate.accept("nova", 1000.0, is_live=True))
        self.assertTrue(gate.accept("nova", 1005.0, is_live=False))
        self.assertFalse(gate.accept("nova", 1010.0, is_live=False))

    def test_forget_and_clear(self):
        gate = DebounceGate(window_seconds=60)
        gate.accept("nova", 1000.0)
        gate.accept("ember", 1000.0)
        gate.forget("nova")
        self.assertTrue(gate.accept("nova", 1001.0))
        gate.clear()
        self.assertTrue(gate.accept("ember", 1002.0))

    def test_zero_window_accepts_everything(self):
        gate = DebounceGate(window_seconds=0)
        self.assertTrue(gate.accept("nova", 1000.0))
        self.assertTrue(gate.accept("nova", 1000.0))


if __name__ == "__main__":
    unittest.main()
