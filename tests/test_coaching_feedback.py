from __future__ import annotations

import unittest

from framecoach.coaching.feedback import CoachingFeedback, HapticKind, ScoreColour, score_colour
from framecoach.coaching.scoring import CoachingInstruction, MatchResult
from framecoach.utils.clock import ManualClock
from framecoach.utils.event_log import EventLog


class _RecordingHaptics:
    def __init__(self) -> None:
        self.pulses: list[tuple[float, HapticKind]] = []
        self.clock: ManualClock | None = None

    def pulse(self, kind: HapticKind) -> None:
        self.pulses.append((self.clock.now() if self.clock else 0.0, kind))


def _result(overall: float, instruction: CoachingInstruction) -> MatchResult:
    return MatchResult(framing_score=overall, pose_score=overall, overall_score=overall, instruction=instruction)


class CoachingFeedbackTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = ManualClock()
        self.haptics = _RecordingHaptics()
        self.haptics.clock = self.clock
        self.log = EventLog(path=None)
        self.feedback = CoachingFeedback(haptics=self.haptics, clock=self.clock, log=self.log)

    def test_display_for_perfect(self) -> None:
        display = self.feedback.update(_result(0.92, CoachingInstruction.PERFECT))
        self.assertEqual(display.text, "Perfect!")
        self.assertEqual(display.icon, "checkmark.circle.fill")
        self.assertEqual(display.colour, ScoreColour.GREEN)
        self.assertEqual(display.score_percent, 92)
        self.assertTrue(display.haptic_fired)

    def test_colour_bands(self) -> None:
        self.assertEqual(score_colour(0.85), ScoreColour.GREEN)
        self.assertEqual(score_colour(0.7), ScoreColour.YELLOW)
        self.assertEqual(score_colour(0.6), ScoreColour.YELLOW)
        self.assertEqual(score_colour(0.59), ScoreColour.RED)

    def test_no_haptic_below_perfect(self) -> None:
        display = self.feedback.update(_result(0.8, CoachingInstruction.HOLD))
        self.assertFalse(display.haptic_fired)
        self.assertEqual(self.haptics.pulses, [])

    def test_haptic_cooldown(self) -> None:
        self.feedback.update(_result(0.9, CoachingInstruction.PERFECT))
        self.clock.advance(1.0)
        self.feedback.update(_result(0.9, CoachingInstruction.PERFECT))
        self.clock.advance(1.5)
        self.feedback.update(_result(0.9, CoachingInstruction.PERFECT))
        self.assertEqual(self.haptics.pulses, [(0.0, HapticKind.LIGHT), (2.5, HapticKind.LIGHT)])

    def test_reset_clears_cooldown(self) -> None:
        self.feedback.update(_result(0.9, CoachingInstruction.PERFECT))
        self.feedback.reset()
        display = self.feedback.update(_result(0.9, CoachingInstruction.PERFECT))
        self.assertTrue(display.haptic_fired)
        self.assertEqual(len(self.haptics.pulses), 2)

    def test_every_instruction_has_display_text(self) -> None:
        for instruction in CoachingInstruction:
            display = self.feedback.update(_result(0.1, instruction))
            self.assertEqual(display.text, instruction.value)
            self.assertTrue(display.icon)

    def test_instruction_is_logged(self) -> None:
        self.feedback.update(_result(0.4, CoachingInstruction.STEP_FORWARD))
        self.assertIn("component=Coaching Coaching: Step Forward (score=0.40)", self.log.recent()[-1])


if __name__ == "__main__":
    unittest.main()
