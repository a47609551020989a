from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.config import ConfigDict

from ..vision.pose import JOINT_VOCABULARY


SCHEMA_VERSION = 1

BonePair = Tuple[str, str]

# Inclusive (min, max) for every clamped scalar, keyed by dotted attribute path.
CLAMP_RANGES: Dict[str, Tuple[float, float]] = {
    "tone.exposure_ev": (-1.0, 1.0),
    "tone.contrast": (0.8, 1.3),
    "tone.highlights": (-0.3, 0.3),
    "tone.shadows": (-0.3, 0.3),
    "tone.saturation": (0.8, 1.3),
    "tone.vibrance": (0.0, 0.5),
    "tone.sharpness": (0.0, 0.3),
    "white_balance.temperature": (3000.0, 7500.0),
    "white_balance.tint": (-20.0, 20.0),
    "exposure_bias": (-1.0, 1.0),
}

DEFAULT_BONE_PAIRS: List[BonePair] = [
    ("left_shoulder", "right_shoulder"),
    ("right_shoulder", "right_hip"),
    ("left_shoulder", "left_hip"),
    ("right_hip", "right_knee"),
    ("left_hip", "left_knee"),
]

TORSO_BONE_PAIRS: List[BonePair] = DEFAULT_BONE_PAIRS[:3]


class TemplateError(ValueError):
    """Raised when a template payload is malformed and cannot be used."""


class _Model(BaseModel):
    # Wire names follow the v1 template JSON; snake_case names work too.
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Frame(_Model):
    aspect_ratio: str = Field(default="device", alias="aspectRatio")


class BBox(_Model):
    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)
    w: float = Field(ge=0.0, le=1.0)
    h: float = Field(ge=0.0, le=1.0)


class Subject(_Model):
    bounding_box: BBox = Field(alias="bbox")
    target_height_fraction: float = Field(alias="targetBoxHeightPct", gt=0.0, le=1.0)
    key_bone_pairs: List[BonePair] = Field(default_factory=list, alias="keybones")

    @field_validator("key_bone_pairs", mode="before")
    @classmethod
    def _check_bone_pairs(cls, value: Any) -> List[BonePair]:
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise ValueError("keybones must be a list of joint-name pairs")
        pairs: List[BonePair] = []
        for idx, raw in enumerate(value):
            if not isinstance(raw, (list, tuple)) or len(raw) != 2:
                raise ValueError(f"keybones[{idx}] must contain exactly two joint names")
            start, end = raw
            for name in (start, end):
                if not isinstance(name, str) or name not in JOINT_VOCABULARY:
                    raise ValueError(f"keybones[{idx}] has unknown joint name: {name!r}")
            if start == end:
                raise ValueError(f"keybones[{idx}] joins {start!r} to itself")
            pairs.append((start, end))
        return pairs


class Background(_Model):
    horizon_fraction: Optional[float] = Field(default=None, alias="horizonY")
    # Line segments [[[x1, y1], [x2, y2]], ...]
    dominant_lines: List[List[List[float]]] = Field(default_factory=list, alias="dominantLines")


class WhiteBalance(_Model):
    temperature: float = 5500.0
    tint: float = 0.0


class Tone(_Model):
    exposure_ev: float = Field(default=0.0, alias="exposureEV")
    contrast: float = 1.0
    highlights: float = 0.0
    shadows: float = 0.0
    saturation: float = 1.0
    vibrance: float = 0.0
    sharpness: float = 0.0


class CameraTargets(_Model):
    prefer_lenses: List[str] = Field(default_factory=lambda: ["wide", "ultrawide", "tele"], alias="preferLenses")
    zoom_factor: float = Field(default=1.0, alias="zoomFactor")
    flash: str = "off"
    exposure_bias: float = Field(default=0.0, alias="exposureBiasEV")
    white_balance: WhiteBalance = Field(default_factory=WhiteBalance, alias="wb")
    tone: Tone = Field(default_factory=Tone)


class Template(_Model):
    id: str
    version: int = Field(default=SCHEMA_VERSION, alias="v")
    frame: Frame = Field(default_factory=Frame)
    subject: Subject
    background: Background = Field(default_factory=Background)
    camera_targets: CameraTargets = Field(default_factory=CameraTargets, alias="cameraTargets")

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: int) -> int:
        if value != SCHEMA_VERSION:
            raise ValueError(f"unsupported template version {value}; expected {SCHEMA_VERSION}")
        return value

    @property
    def target_height(self) -> float:
        return self.subject.target_height_fraction

    @property
    def key_bone_pairs(self) -> List[BonePair]:
        return self.subject.key_bone_pairs

    def validated(self) -> "Template":
        return validate(self)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)


def clamp(value: float, lo: float, hi: float) -> float:
    v = float(value)
    if math.isnan(v):
        return lo
    return min(max(v, lo), hi)


def _clamped(name: str, value: float) -> float:
    lo, hi = CLAMP_RANGES[name]
    return clamp(value, lo, hi)


def validate(template: Template) -> Template:
    """Clamp every camera-target scalar into its declared range.

    Total and silent: out-of-range input is never an error. Applying it twice
    gives the same template as applying it once.
    """
    targets = template.camera_targets
    tone = targets.tone
    wb = targets.white_balance
    new_tone = tone.model_copy(
        update={
            "exposure_ev": _clamped("tone.exposure_ev", tone.exposure_ev),
            "contrast": _clamped("tone.contrast", tone.contrast),
            "highlights": _clamped("tone.highlights", tone.highlights),
            "shadows": _clamped("tone.shadows", tone.shadows),
            "saturation": _clamped("tone.saturation", tone.saturation),
            "vibrance": _clamped("tone.vibrance", tone.vibrance),
            "sharpness": _clamped("tone.sharpness", tone.sharpness),
        }
    )
    new_wb = wb.model_copy(
        update={
            "temperature": _clamped("white_balance.temperature", wb.temperature),
            "tint": _clamped("white_balance.tint", wb.tint),
        }
    )
    new_targets = targets.model_copy(
        update={
            "exposure_bias": _clamped("exposure_bias", targets.exposure_bias),
            "white_balance": new_wb,
            "tone": new_tone,
        }
    )
    return template.model_copy(update={"camera_targets": new_targets})


def parse_template(data: Mapping[str, Any]) -> Template:
    if not isinstance(data, Mapping):
        raise TemplateError("template payload must be a JSON object")
    try:
        template = Template.model_validate(dict(data))
    except ValidationError as exc:
        raise TemplateError(f"malformed template: {exc}") from exc
    return validate(template)


def load_template_json(text: str) -> Template:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TemplateError(f"template is not valid JSON: {exc}") from exc
    return parse_template(data)


def default_seed() -> Template:
    return Template(
        id="seed_001",
        version=SCHEMA_VERSION,
        frame=Frame(aspect_ratio="device"),
        subject=Subject(
            bounding_box=BBox(x=0.28, y=0.12, w=0.44, h=0.68),
            target_height_fraction=0.68,
            key_bone_pairs=list(DEFAULT_BONE_PAIRS),
        ),
        background=Background(horizon_fraction=0.60, dominant_lines=[[[0.1, 0.6], [0.9, 0.6]]]),
        camera_targets=CameraTargets(),
    )
