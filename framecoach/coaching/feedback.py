from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol

from ..config import DEFAULT_CONFIG, EngineConfig
from ..utils.clock import Clock, MonotonicClock
from ..utils.event_log import EventLog, NullLog
from .scoring import CoachingInstruction, MatchResult


class HapticKind(str, Enum):
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"
    SELECTION = "selection"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class HapticsSink(Protocol):
    def pulse(self, kind: HapticKind) -> None:
        ...


class NullHaptics:
    def pulse(self, kind: HapticKind) -> None:
        return


class ScoreColour(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


_ICONS: Dict[CoachingInstruction, str] = {
    CoachingInstruction.STEP_FORWARD: "arrow.forward",
    CoachingInstruction.STEP_BACK: "arrow.backward",
    CoachingInstruction.ROTATE_CLOCKWISE: "arrow.clockwise",
    CoachingInstruction.ROTATE_COUNTERCLOCKWISE: "arrow.counterclockwise",
    CoachingInstruction.HOLD: "hand.raised.fill",
    CoachingInstruction.PERFECT: "checkmark.circle.fill",
}


@dataclass(frozen=True)
class CoachingDisplay:
    text: str
    icon: str
    colour: ScoreColour
    score_percent: int
    haptic_fired: bool


def score_colour(overall: float, config: EngineConfig = DEFAULT_CONFIG) -> ScoreColour:
    if overall >= config.colour_green_score:
        return ScoreColour.GREEN
    if overall >= config.colour_yellow_score:
        return ScoreColour.YELLOW
    return ScoreColour.RED


class CoachingFeedback:
    """Turns match results into display state and throttled haptic pulses."""

    def __init__(
        self,
        haptics: Optional[HapticsSink] = None,
        clock: Optional[Clock] = None,
        config: EngineConfig = DEFAULT_CONFIG,
        log: Optional[EventLog] = None,
    ) -> None:
        self.haptics = haptics or NullHaptics()
        self.clock = clock or MonotonicClock()
        self.config = config
        self.log = log or NullLog()
        self._last_haptic_time: Optional[float] = None

    def update(self, result: MatchResult) -> CoachingDisplay:
        fired = False
        if result.overall_score >= self.config.perfect_score:
            fired = self._trigger_haptic_if_needed()
        self.log.info(
            f"Coaching: {result.instruction.value} (score={result.overall_score:.2f})",
            component="Coaching",
        )
        return CoachingDisplay(
            text=result.instruction.value,
            icon=_ICONS[result.instruction],
            colour=score_colour(result.overall_score, self.config),
            score_percent=int(round(result.overall_score * 100.0)),
            haptic_fired=fired,
        )

    def reset(self) -> None:
        self._last_haptic_time = None

    def _trigger_haptic_if_needed(self) -> bool:
        now = self.clock.now()
        if self._last_haptic_time is not None:
            if now - self._last_haptic_time < self.config.haptic_cooldown_seconds:
                return False
        self.haptics.pulse(HapticKind.LIGHT)
        self._last_haptic_time = now
        return True
