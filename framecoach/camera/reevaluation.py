from __future__ import annotations

from ..config import DEFAULT_CONFIG


def height_drift(current_height: float, target_height: float, epsilon: float = DEFAULT_CONFIG.zoom_epsilon) -> float:
    return abs(float(current_height) - float(target_height)) / max(float(target_height), epsilon)


def should_reevaluate(
    current_height: float,
    target_height: float,
    threshold: float = DEFAULT_CONFIG.reevaluate_drift,
) -> bool:
    """True when live framing has drifted more than ``threshold`` (relative) from the target."""
    return height_drift(current_height, target_height) > threshold
