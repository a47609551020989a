from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


# Tunable constants for framing decisions. Values are in normalised frame units
# (fractions of frame height) unless the key says otherwise.
THRESHOLDS: Dict[str, float] = {
    # Lens picker
    "debounce_seconds": 1.5,
    "stickiness_score": 0.2,
    "zoom_epsilon": 0.001,

    # Match scorer
    "framing_tolerance": 0.08,
    "framing_weight": 0.6,
    "pose_weight": 0.4,
    "pose_neutral_score": 0.5,
    "joint_min_confidence": 0.5,
    "perfect_score": 0.85,
    "hold_score": 0.75,
    "step_height_delta": 0.1,

    # Reevaluation trigger
    "reevaluate_drift": 0.05,

    # Session cadence
    "frame_interval": 5,

    # Coaching feedback
    "haptic_cooldown_seconds": 2.0,
    "colour_green_score": 0.85,
    "colour_yellow_score": 0.6,

    # Template generator
    "generator_min_confidence": 0.3,
}


@dataclass(frozen=True)
class EngineConfig:
    debounce_seconds: float = THRESHOLDS["debounce_seconds"]
    stickiness_score: float = THRESHOLDS["stickiness_score"]
    zoom_epsilon: float = THRESHOLDS["zoom_epsilon"]
    framing_tolerance: float = THRESHOLDS["framing_tolerance"]
    framing_weight: float = THRESHOLDS["framing_weight"]
    pose_weight: float = THRESHOLDS["pose_weight"]
    pose_neutral_score: float = THRESHOLDS["pose_neutral_score"]
    joint_min_confidence: float = THRESHOLDS["joint_min_confidence"]
    perfect_score: float = THRESHOLDS["perfect_score"]
    hold_score: float = THRESHOLDS["hold_score"]
    step_height_delta: float = THRESHOLDS["step_height_delta"]
    reevaluate_drift: float = THRESHOLDS["reevaluate_drift"]
    frame_interval: int = int(THRESHOLDS["frame_interval"])
    haptic_cooldown_seconds: float = THRESHOLDS["haptic_cooldown_seconds"]
    colour_green_score: float = THRESHOLDS["colour_green_score"]
    colour_yellow_score: float = THRESHOLDS["colour_yellow_score"]
    generator_min_confidence: float = THRESHOLDS["generator_min_confidence"]

    def with_overrides(self, overrides: Dict[str, Any]) -> "EngineConfig":
        known = {f.name: f for f in fields(self)}
        changes: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                continue
            current = getattr(self, key)
            try:
                if isinstance(current, int) and not isinstance(current, bool):
                    changes[key] = max(1, int(value))
                else:
                    changes[key] = float(value)
            except (TypeError, ValueError):
                continue
        return replace(self, **changes)


DEFAULT_CONFIG = EngineConfig()


def get_threshold(name: str, default: float | None = None) -> float | None:
    if name in THRESHOLDS:
        return THRESHOLDS[name]
    return default


def default_config_path() -> Path:
    return Path(__file__).resolve().parent.parent / "config" / "engine.yaml"


def load_engine_config(path: Optional[Path] = None) -> EngineConfig:
    cfg_path = Path(path) if path is not None else default_config_path()
    if not cfg_path.exists():
        return DEFAULT_CONFIG
    try:
        data = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
    except Exception:
        return DEFAULT_CONFIG
    if not isinstance(data, dict):
        return DEFAULT_CONFIG
    # Accept either a flat mapping or one nested under "engine".
    section = data.get("engine") if isinstance(data.get("engine"), dict) else data
    return DEFAULT_CONFIG.with_overrides(section)
