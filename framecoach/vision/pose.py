from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Tuple

import numpy as np


# Joint names accepted in templates and produced by pose backends.
JOINT_NAMES: Tuple[str, ...] = (
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "neck",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "root",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
)

JOINT_VOCABULARY = frozenset(JOINT_NAMES)


@dataclass(frozen=True)
class JointPoint:
    # Normalised coords in [0,1] (x,y)
    x: float
    y: float
    confidence: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)


@dataclass(frozen=True)
class PoseObservation:
    joints: Dict[str, JointPoint] = field(default_factory=dict)

    def joint(self, name: str) -> Optional[JointPoint]:
        return self.joints.get(name)

    def confident_joints(self, min_confidence: float) -> Dict[str, JointPoint]:
        return {k: p for k, p in self.joints.items() if p.confidence > min_confidence}

    def bounding_box(self, min_confidence: float = 0.0) -> Optional[Tuple[float, float, float, float]]:
        """(x, y, w, h) around the joints above ``min_confidence``, clipped to [0,1]."""
        pts = [p.as_array() for p in self.confident_joints(min_confidence).values()]
        if not pts:
            return None
        arr = np.clip(np.vstack(pts), 0.0, 1.0)
        lo = arr.min(axis=0)
        hi = arr.max(axis=0)
        return (float(lo[0]), float(lo[1]), float(hi[0] - lo[0]), float(hi[1] - lo[1]))

    @staticmethod
    def from_landmarks(
        pts: Mapping[str, Tuple[float, float]],
        confidence: float | Mapping[str, float] = 1.0,
    ) -> "PoseObservation":
        joints: Dict[str, JointPoint] = {}
        for name, (x, y) in pts.items():
            if isinstance(confidence, Mapping):
                conf = float(confidence.get(name, 0.0))
            else:
                conf = float(confidence)
            joints[name] = JointPoint(x=float(x), y=float(y), confidence=conf)
        return PoseObservation(joints=joints)


def resolve_bone(
    pose: PoseObservation,
    pair: Tuple[str, str],
    min_confidence: float,
) -> Optional[Tuple[JointPoint, JointPoint]]:
    start = pose.joint(pair[0])
    end = pose.joint(pair[1])
    if start is None or end is None:
        return None
    if start.confidence <= min_confidence or end.confidence <= min_confidence:
        return None
    return start, end


def bone_angle(start: JointPoint, end: JointPoint) -> float:
    # Degrees, counter-clockwise from +x in image coordinates.
    v = end.as_array() - start.as_array()
    if float(np.linalg.norm(v)) < 1e-8:
        return 0.0
    return math.degrees(math.atan2(float(v[1]), float(v[0])))


def bone_key(pair: Iterable[str]) -> str:
    return "-".join(pair)


# Mediapipe PoseLandmark attribute for each joint we map. Neck and root have
# no landmark of their own.
_MEDIAPIPE_LANDMARKS: Dict[str, str] = {
    "nose": "NOSE",
    "left_eye": "LEFT_EYE",
    "right_eye": "RIGHT_EYE",
    "left_ear": "LEFT_EAR",
    "right_ear": "RIGHT_EAR",
    "left_shoulder": "LEFT_SHOULDER",
    "right_shoulder": "RIGHT_SHOULDER",
    "left_elbow": "LEFT_ELBOW",
    "right_elbow": "RIGHT_ELBOW",
    "left_wrist": "LEFT_WRIST",
    "right_wrist": "RIGHT_WRIST",
    "left_hip": "LEFT_HIP",
    "right_hip": "RIGHT_HIP",
    "left_knee": "LEFT_KNEE",
    "right_knee": "RIGHT_KNEE",
    "left_ankle": "LEFT_ANKLE",
    "right_ankle": "RIGHT_ANKLE",
}


def observation_from_mediapipe(landmarks, landmark_enum) -> PoseObservation:
    """Convert a mediapipe ``pose_landmarks`` result into a PoseObservation.

    ``landmark_enum`` is ``mp.solutions.pose.PoseLandmark``; it is passed in so
    this function stays usable without mediapipe installed.
    """
    joints: Dict[str, JointPoint] = {}
    if landmarks is None:
        return PoseObservation(joints=joints)
    for name, attr in _MEDIAPIPE_LANDMARKS.items():
        idx = getattr(landmark_enum, attr)
        p = landmarks.landmark[idx]
        conf = float(getattr(p, "visibility", 1.0) or 0.0)
        joints[name] = JointPoint(x=float(p.x), y=float(p.y), confidence=conf)

    # Synthesise neck and root as shoulder / hip midpoints.
    for mid, (a, b) in (("neck", ("left_shoulder", "right_shoulder")), ("root", ("left_hip", "right_hip"))):
        pa, pb = joints.get(a), joints.get(b)
        if pa is None or pb is None:
            continue
        joints[mid] = JointPoint(
            x=0.5 * (pa.x + pb.x),
            y=0.5 * (pa.y + pb.y),
            confidence=min(pa.confidence, pb.confidence),
        )
    return PoseObservation(joints=joints)


class PoseBackend:
    """Mediapipe-based pose estimator yielding PoseObservation values."""

    def __init__(self, min_detection_confidence: float = 0.5) -> None:
        # Lazy import so the module can be imported even if mediapipe isn't installed
        import mediapipe as mp

        # MediaPipe removed the legacy "Solutions" API from mediapipe>=0.10.30.
        if not hasattr(mp, "solutions"):
            raise RuntimeError(
                "Your mediapipe package does not include the Solutions API (mp.solutions.*). "
                "Install a compatible version, e.g.:\n\n"
                "  pip install 'mediapipe<0.10.30'\n"
            )

        self.mp = mp
        self.pose = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=1,
            enable_segmentation=False,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=0.5,
        )

    def process_bgr(self, frame_bgr: np.ndarray) -> Optional[PoseObservation]:
        frame_rgb = frame_bgr[:, :, ::-1]
        res = self.pose.process(frame_rgb)
        if res.pose_landmarks is None:
            return None
        return observation_from_mediapipe(res.pose_landmarks, self.mp.solutions.pose.PoseLandmark)
