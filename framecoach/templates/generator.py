from __future__ import annotations

import uuid
from typing import List, Optional

from ..config import DEFAULT_CONFIG, EngineConfig
from ..vision.pose import PoseObservation
from .schema import (
    DEFAULT_BONE_PAIRS,
    TORSO_BONE_PAIRS,
    Background,
    BBox,
    BonePair,
    Subject,
    Template,
    TemplateError,
    validate,
)


def extract_key_bones(observation: PoseObservation, min_confidence: float) -> List[BonePair]:
    available = set(observation.confident_joints(min_confidence))
    bones = [pair for pair in DEFAULT_BONE_PAIRS if pair[0] in available and pair[1] in available]
    if not bones:
        # Fall back to the basic torso skeleton.
        bones = list(TORSO_BONE_PAIRS)
    return bones


def template_from_pose(
    observation: PoseObservation,
    template_id: Optional[str] = None,
    horizon: Optional[float] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Template:
    """Build a template whose subject framing and key bones match a reference pose."""
    bbox = observation.bounding_box(min_confidence=config.generator_min_confidence)
    if bbox is None or bbox[3] <= 0.0:
        raise TemplateError("No pose detected in reference observation")
    x, y, w, h = bbox
    lines = [[[0.1, horizon], [0.9, horizon]]] if horizon is not None else []
    template = Template(
        id=template_id or f"template_{uuid.uuid4().hex[:8]}",
        subject=Subject(
            bounding_box=BBox(x=x, y=y, w=w, h=h),
            target_height_fraction=h,
            key_bone_pairs=extract_key_bones(observation, config.generator_min_confidence),
        ),
        background=Background(horizon_fraction=horizon, dominant_lines=lines),
    )
    return validate(template)
