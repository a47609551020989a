from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..config import DEFAULT_CONFIG, EngineConfig
from ..utils.clock import Clock, MonotonicClock
from ..utils.event_log import EventLog, NullLog
from .lenses import LensOption, LensPick, LensProbe, PickReason


@dataclass(frozen=True)
class _Candidate:
    lens: LensOption
    zoom_needed: float
    score: float


class LensPicker:
    """Chooses the lens needing the least digital zoom to hit a target height.

    Holds only the id of the last picked lens and when it was picked. A pick is
    frozen for ``debounce_seconds``; after that, the current lens is kept while
    it stays within ``stickiness_score`` of 1.0x. All state access goes through
    one lock so concurrent callers cannot apply conflicting picks.

    Callers that gather probes asynchronously take a generation from
    ``begin_evaluation()`` first and pass it to ``pick_lens``. A pick made for a
    generation that has since been superseded (by a newer evaluation or by
    ``reset()``) is returned but never remembered.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        config: EngineConfig = DEFAULT_CONFIG,
        log: Optional[EventLog] = None,
    ) -> None:
        self.clock = clock or MonotonicClock()
        self.config = config
        self.log = log or NullLog()
        self._lock = threading.Lock()
        self._last_pick_time: Optional[float] = None
        self._last_picked_lens_id: Optional[str] = None
        self._generation = 0

    @property
    def last_picked_lens_id(self) -> Optional[str]:
        with self._lock:
            return self._last_picked_lens_id

    @property
    def last_pick_time(self) -> Optional[float]:
        with self._lock:
            return self._last_pick_time

    def zoom_needed(self, target_height: float, subject_height: float) -> float:
        return float(target_height) / max(float(subject_height), self.config.zoom_epsilon)

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def begin_evaluation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def pick_lens(
        self,
        target_height: float,
        probes: Sequence[LensProbe],
        generation: Optional[int] = None,
    ) -> Optional[LensPick]:
        if not probes:
            self.log.warning("No lens probes available", component="LensPicker")
            return None

        with self._lock:
            stale = generation is not None and generation != self._generation
            return self._pick_locked(target_height, probes, remember=not stale)

    def reset(self) -> None:
        with self._lock:
            self._generation += 1
            self._last_pick_time = None
            self._last_picked_lens_id = None

    def _pick_locked(self, target_height: float, probes: Sequence[LensProbe], remember: bool = True) -> LensPick:
        now = self.clock.now()

        if self._last_pick_time is not None and self._last_picked_lens_id is not None:
            elapsed = now - self._last_pick_time
            if elapsed < self.config.debounce_seconds:
                current = self._probe_for(probes, self._last_picked_lens_id)
                if current is not None:
                    # Lens choice is frozen; the zoom still tracks the live height.
                    zoom = self.zoom_needed(target_height, current.subject_height)
                    return LensPick(lens=current.lens, zoom_needed=zoom, reason=PickReason.DEBOUNCED)

        candidates: List[_Candidate] = []
        for probe in probes:
            zoom = self.zoom_needed(target_height, probe.subject_height)
            if zoom > probe.lens.max_zoom:
                continue
            candidates.append(_Candidate(lens=probe.lens, zoom_needed=zoom, score=abs(zoom - 1.0)))

        if not candidates:
            # Every lens would exceed its max zoom: take the one needing the least
            # zoom; the subject has to come closer.
            probe = min(probes, key=lambda p: self.zoom_needed(target_height, p.subject_height))
            zoom = self.zoom_needed(target_height, probe.subject_height)
            self.log.info(
                f"All lenses exceed maxZoom; using {probe.lens.kind.value} @ {zoom:.2f}x",
                component="LensPicker",
            )
            if remember:
                self._remember(probe.lens, now)
            return LensPick(lens=probe.lens, zoom_needed=zoom, reason=PickReason.FALLBACK)

        candidates.sort(key=lambda c: c.score)
        best = candidates[0]

        if self._last_picked_lens_id is not None:
            current = next((c for c in candidates if c.lens.lens_id == self._last_picked_lens_id), None)
            if current is not None and current.score <= self.config.stickiness_score:
                self.log.info(
                    f"Keeping current lens {current.lens.kind.value} (score: {current.score:.3f})",
                    component="LensPicker",
                )
                return LensPick(lens=current.lens, zoom_needed=current.zoom_needed, reason=PickReason.KEPT)

        self.log.info(
            f"Selected {best.lens.kind.value} @ {best.zoom_needed:.2f}x (score: {best.score:.3f})",
            component="LensPicker",
        )
        if remember:
            self._remember(best.lens, now)
        return LensPick(lens=best.lens, zoom_needed=best.zoom_needed, reason=PickReason.SELECTED)

    def _remember(self, lens: LensOption, now: float) -> None:
        self._last_pick_time = now
        self._last_picked_lens_id = lens.lens_id

    @staticmethod
    def _probe_for(probes: Sequence[LensProbe], lens_id: str) -> Optional[LensProbe]:
        for probe in probes:
            if probe.lens.lens_id == lens_id:
                return probe
        return None
