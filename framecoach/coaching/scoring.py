from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence

from ..config import DEFAULT_CONFIG, EngineConfig
from ..templates.schema import BonePair
from ..vision.pose import PoseObservation, bone_angle, bone_key, resolve_bone


class CoachingInstruction(str, Enum):
    STEP_FORWARD = "Step Forward"
    STEP_BACK = "Step Back"
    # Part of the vocabulary, but score_match has no trigger for rotations yet.
    ROTATE_CLOCKWISE = "Rotate Right"
    ROTATE_COUNTERCLOCKWISE = "Rotate Left"
    HOLD = "Hold Still"
    PERFECT = "Perfect!"


@dataclass(frozen=True)
class MatchResult:
    framing_score: float
    pose_score: float
    overall_score: float
    instruction: CoachingInstruction
    # Orientation of each resolved bone in degrees; diagnostic only.
    bone_angles: Dict[str, float] = field(default_factory=dict)


def framing_score(live_height: float, target_height: float, tolerance: float = DEFAULT_CONFIG.framing_tolerance) -> float:
    if tolerance <= 0.0:
        tolerance = 1e-6
    err = abs(float(live_height) - float(target_height))
    # 1 at 0 error, down to 0 at >= tol
    return max(0.0, 1.0 - (err / tolerance))


def pose_score(
    live_pose: Optional[PoseObservation],
    key_bone_pairs: Sequence[BonePair],
    config: EngineConfig = DEFAULT_CONFIG,
) -> tuple[float, Dict[str, float]]:
    if live_pose is None:
        return config.pose_neutral_score, {}

    per_bone: list[float] = []
    angles: Dict[str, float] = {}
    for pair in key_bone_pairs:
        resolved = resolve_bone(live_pose, pair, config.joint_min_confidence)
        if resolved is None:
            continue
        start, end = resolved
        angles[bone_key(pair)] = bone_angle(start, end)
        # A resolved bone counts as a match; its orientation is not compared
        # against the template.
        per_bone.append(1.0)

    if not per_bone:
        return config.pose_neutral_score, angles
    return sum(per_bone) / len(per_bone), angles


def choose_instruction(
    overall: float,
    live_height: float,
    target_height: float,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CoachingInstruction:
    if overall >= config.perfect_score:
        return CoachingInstruction.PERFECT
    if overall >= config.hold_score:
        return CoachingInstruction.HOLD

    height_delta = float(live_height) - float(target_height)
    if height_delta < -config.step_height_delta:
        return CoachingInstruction.STEP_FORWARD
    if height_delta > config.step_height_delta:
        return CoachingInstruction.STEP_BACK
    # Framing is acceptable; pose is dragging the score down.
    return CoachingInstruction.HOLD


def score_match(
    live_height: float,
    target_height: float,
    live_pose: Optional[PoseObservation],
    key_bone_pairs: Sequence[BonePair],
    config: EngineConfig = DEFAULT_CONFIG,
) -> MatchResult:
    framing = framing_score(live_height, target_height, config.framing_tolerance)
    pose, angles = pose_score(live_pose, key_bone_pairs, config)
    overall = framing * config.framing_weight + pose * config.pose_weight
    return MatchResult(
        framing_score=framing,
        pose_score=pose,
        overall_score=overall,
        instruction=choose_instruction(overall, live_height, target_height, config),
        bone_angles=angles,
    )
