from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .camera.exposure import DeviceExposureLimits, WhiteBalanceGains
from .camera.lenses import LensOption, find_lens, normalize_kind
from .config import DEFAULT_CONFIG, EngineConfig
from .session import FrameOutcome, FramingSession
from .templates.schema import Template, TemplateError, default_seed, load_template_json, parse_template
from .utils.clock import ManualClock
from .utils.event_log import EventLog, NullLog
from .vision.pose import JointPoint, PoseObservation


@dataclass
class ScriptedCapture:
    """Capture stand-in fed from a replay script, one frame at a time."""

    lenses: List[LensOption]
    heights: Dict[str, float] = field(default_factory=dict)
    active_lens_id: Optional[str] = None
    zoom: float = 1.0
    switches: List[str] = field(default_factory=list)
    limits: DeviceExposureLimits = field(default_factory=DeviceExposureLimits)
    raw_gains: WhiteBalanceGains = field(default_factory=lambda: WhiteBalanceGains(1.0, 1.0, 1.0))
    locked: Optional[Tuple[float, WhiteBalanceGains]] = None

    def available_lenses(self) -> List[LensOption]:
        return list(self.lenses)

    def probe(self, lens: LensOption) -> Optional[float]:
        return self.heights.get(lens.lens_id)

    def switch_lens(self, lens: LensOption) -> None:
        self.active_lens_id = lens.lens_id
        self.switches.append(lens.lens_id)

    def set_zoom(self, zoom: float) -> None:
        lens = find_lens(self.lenses, self.active_lens_id)
        top = lens.max_zoom if lens is not None else zoom
        self.zoom = max(1.0, min(float(zoom), top))

    def exposure_limits(self) -> DeviceExposureLimits:
        return self.limits

    def white_balance_gains(self, temperature: float, tint: float) -> WhiteBalanceGains:
        return self.raw_gains

    def lock_exposure(self, exposure_bias: float, gains: WhiteBalanceGains) -> None:
        self.locked = (exposure_bias, gains)


def load_script(path: Path) -> Dict[str, Any]:
    text = Path(path).read_text(encoding="utf-8")
    if Path(path).suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"Replay script must be a mapping: {path}")
    return data


def _parse_lenses(raw: Any) -> List[LensOption]:
    lenses: List[LensOption] = []
    for item in raw if isinstance(raw, list) else []:
        if not isinstance(item, dict):
            continue
        kind = normalize_kind(item.get("kind", "wide"))
        lens_id = str(item.get("id") or kind.value).strip()
        lenses.append(LensOption(lens_id=lens_id, kind=kind, max_zoom=_number(item.get("max_zoom", 1.0), "max_zoom")))
    return lenses


def _parse_pose(raw: Any) -> Optional[PoseObservation]:
    if not isinstance(raw, dict):
        return None
    joints: Dict[str, JointPoint] = {}
    for name, value in raw.items():
        if not isinstance(value, (list, tuple)) or len(value) < 2:
            continue
        conf = float(value[2]) if len(value) > 2 else 1.0
        joints[str(name)] = JointPoint(x=float(value[0]), y=float(value[1]), confidence=conf)
    return PoseObservation(joints=joints)


def _number(value: Any, what: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Replay script {what} is not a number: {value!r}") from None


def _parse_device(raw: Any, capture: ScriptedCapture) -> None:
    if not isinstance(raw, dict):
        return
    defaults = DeviceExposureLimits()
    capture.limits = DeviceExposureLimits(
        min_bias=_number(raw.get("min_bias", defaults.min_bias), "min_bias"),
        max_bias=_number(raw.get("max_bias", defaults.max_bias), "max_bias"),
        max_white_balance_gain=_number(raw.get("max_wb_gain", defaults.max_white_balance_gain), "max_wb_gain"),
    )
    gains = raw.get("wb_gains")
    if isinstance(gains, (list, tuple)) and len(gains) == 3:
        red, green, blue = (_number(g, "wb_gains") for g in gains)
        capture.raw_gains = WhiteBalanceGains(red=red, green=green, blue=blue)


def _resolve_template(raw: Any, base_dir: Path) -> Template:
    if raw is None:
        return default_seed()
    if isinstance(raw, dict):
        return parse_template(raw)
    path = Path(str(raw))
    if not path.is_absolute():
        path = base_dir / path
    if not path.exists():
        raise TemplateError(f"Template file not found: {path}")
    return load_template_json(path.read_text(encoding="utf-8"))


def run_script(
    script: Dict[str, Any],
    base_dir: Path = Path("."),
    config: EngineConfig = DEFAULT_CONFIG,
    log: Optional[EventLog] = None,
) -> List[FrameOutcome]:
    overrides = script.get("config") if isinstance(script.get("config"), dict) else {}
    cfg = config.with_overrides(overrides)
    lenses = _parse_lenses(script.get("lenses"))
    if not lenses:
        raise ValueError("Replay script defines no lenses")

    clock = ManualClock()
    capture = ScriptedCapture(lenses=lenses)
    _parse_device(script.get("device"), capture)
    session = FramingSession(
        template=_resolve_template(script.get("template"), base_dir),
        capture=capture,
        clock=clock,
        config=cfg,
        log=log or NullLog(),
        exposure=capture,
    )

    outcomes: List[FrameOutcome] = []
    frames = script.get("frames") if isinstance(script.get("frames"), list) else []
    for frame in frames:
        if not isinstance(frame, dict):
            continue
        if frame.get("t") is not None:
            clock.t = _number(frame["t"], "t")
        height = frame.get("height")
        height = _number(height, "height") if height is not None else None
        probes = frame.get("probes")
        if isinstance(probes, dict):
            # A null probe means the lens did not see the subject.
            capture.heights = {str(k): _number(v, f"probe {k}") for k, v in probes.items() if v is not None}
        elif height is not None:
            # Without per-lens probes every lens reports the live measurement.
            capture.heights = {lens.lens_id: height for lens in lenses}
        else:
            capture.heights = {}
        outcome = session.process_frame(height, _parse_pose(frame.get("pose")))
        if outcome is not None:
            outcomes.append(outcome)
    return outcomes


def format_outcome(outcome: FrameOutcome) -> str:
    m = outcome.match
    line = (
        f"frame={outcome.frame_index} framing={m.framing_score:.2f} pose={m.pose_score:.2f} "
        f"overall={m.overall_score:.2f} instruction={m.instruction.name}"
    )
    decision = outcome.lens
    if decision is not None:
        if decision.pick is None:
            line += " lens=none"
        else:
            line += (
                f" lens={decision.pick.lens.lens_id} zoom={decision.pick.zoom_needed:.2f}"
                f" reason={decision.pick.reason.value}"
            )
    return line
