from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from .camera.exposure import ExposureDevice, ExposureSettings, apply_exposure
from .camera.lens_picker import LensPicker
from .camera.lenses import LensOption, LensPick, LensProbe, order_lenses
from .camera.reevaluation import should_reevaluate
from .coaching.feedback import CoachingDisplay, CoachingFeedback, HapticsSink
from .coaching.scoring import MatchResult, score_match
from .config import DEFAULT_CONFIG, EngineConfig
from .templates.schema import Template, validate
from .utils.clock import Clock, MonotonicClock
from .utils.event_log import EventLog, NullLog
from .vision.pose import PoseObservation


class CaptureController(Protocol):
    def available_lenses(self) -> Sequence[LensOption]:
        ...

    def probe(self, lens: LensOption) -> Optional[float]:
        """Subject height fraction seen through ``lens`` at zoom 1.0, or None."""
        ...

    def switch_lens(self, lens: LensOption) -> None:
        ...

    def set_zoom(self, zoom: float) -> None:
        ...


@dataclass(frozen=True)
class LensDecision:
    sequence: int
    pick: Optional[LensPick]
    applied: bool
    switched: bool = False


@dataclass(frozen=True)
class FrameOutcome:
    frame_index: int
    match: MatchResult
    display: CoachingDisplay
    lens: Optional[LensDecision] = None


class FramingSession:
    """Per-frame loop: score framing, coach, and re-pick lenses when framing drifts."""

    def __init__(
        self,
        template: Template,
        capture: CaptureController,
        clock: Optional[Clock] = None,
        config: EngineConfig = DEFAULT_CONFIG,
        haptics: Optional[HapticsSink] = None,
        log: Optional[EventLog] = None,
        exposure: Optional[ExposureDevice] = None,
    ) -> None:
        self.capture = capture
        self.clock = clock or MonotonicClock()
        self.config = config
        self.log = log or NullLog()
        self.picker = LensPicker(clock=self.clock, config=config, log=self.log)
        self.feedback = CoachingFeedback(haptics=haptics, clock=self.clock, config=config, log=self.log)
        self.template = validate(template)
        self.current_lens_id: Optional[str] = None
        self._frame_counter = 0
        self._sequence = 0
        self._lock = threading.Lock()
        self.exposure = exposure
        self.exposure_settings: Optional[ExposureSettings] = None
        self._apply_exposure(self.template)

    @property
    def target_height(self) -> float:
        return self.template.subject.target_height_fraction

    def set_template(self, template: Template) -> None:
        validated = validate(template)
        with self._lock:
            self.template = validated
            # Any lens evaluation still in flight was for the old target.
            self._sequence += 1
            self.picker.reset()
        self.feedback.reset()
        self.log.info(f"event=set_template id={validated.id}", component="Session")
        self._apply_exposure(validated)

    def process_frame(
        self,
        subject_height: Optional[float],
        pose: Optional[PoseObservation] = None,
    ) -> Optional[FrameOutcome]:
        with self._lock:
            self._frame_counter += 1
            frame_index = self._frame_counter
        if frame_index % max(1, int(self.config.frame_interval)) != 0:
            return None
        if subject_height is None:
            return None

        template = self.template
        target = template.subject.target_height_fraction
        match = score_match(subject_height, target, pose, template.subject.key_bone_pairs, self.config)
        display = self.feedback.update(match)

        decision: Optional[LensDecision] = None
        if should_reevaluate(subject_height, target, self.config.reevaluate_drift):
            decision = self.evaluate_lenses()
        return FrameOutcome(frame_index=frame_index, match=match, display=display, lens=decision)

    def gather_probes(self) -> List[LensProbe]:
        probes: List[LensProbe] = []
        prefer = self.template.camera_targets.prefer_lenses
        for lens in order_lenses(self.capture.available_lenses(), prefer):
            height = self.capture.probe(lens)
            if height is None:
                continue
            probes.append(LensProbe(lens=lens, subject_height=float(height)))
        return probes

    def evaluate_lenses(self) -> LensDecision:
        with self._lock:
            self._sequence += 1
            sequence = self._sequence
            target = self.template.subject.target_height_fraction
            generation = self.picker.begin_evaluation()

        pick = self.picker.pick_lens(target, self.gather_probes(), generation=generation)
        if pick is None:
            # Keep whatever lens is active; the next frame retries.
            return LensDecision(sequence=sequence, pick=None, applied=False)

        with self._lock:
            if sequence != self._sequence:
                self.log.info(
                    f"Discarding stale lens decision seq={sequence} (latest={self._sequence})",
                    component="Session",
                )
                return LensDecision(sequence=sequence, pick=pick, applied=False)
            switched = pick.lens.lens_id != self.current_lens_id
            if switched:
                self.log.info(
                    f"Lens switch: {self.current_lens_id or 'none'} -> {pick.lens.lens_id} @ {pick.zoom_needed:.2f}x",
                    component="Session",
                )
                self.capture.switch_lens(pick.lens)
                self.current_lens_id = pick.lens.lens_id
            self.capture.set_zoom(pick.zoom_needed)
        return LensDecision(sequence=sequence, pick=pick, applied=True, switched=switched)

    def _apply_exposure(self, template: Template) -> None:
        if self.exposure is None:
            return
        self.exposure_settings = apply_exposure(template, self.exposure, self.log)
