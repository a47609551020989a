from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence


class LensKind(str, Enum):
    ULTRAWIDE = "ultrawide"
    WIDE = "wide"
    TELE = "tele"


@dataclass(frozen=True)
class LensOption:
    lens_id: str
    kind: LensKind
    max_zoom: float

    def __post_init__(self) -> None:
        if not self.lens_id:
            raise ValueError("lens_id must be a non-empty string")
        if not (float(self.max_zoom) >= 1.0):
            raise ValueError(f"max_zoom must be >= 1.0 (got {self.max_zoom})")


@dataclass(frozen=True)
class LensProbe:
    lens: LensOption
    # Subject height fraction measured through this lens at zoom 1.0.
    subject_height: float


class PickReason(str, Enum):
    SELECTED = "selected"
    KEPT = "kept"
    DEBOUNCED = "debounced"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class LensPick:
    lens: LensOption
    zoom_needed: float
    reason: PickReason


def normalize_kind(kind: str | LensKind) -> LensKind:
    if isinstance(kind, LensKind):
        return kind
    value = str(kind or "").strip().lower().replace("-", "").replace("_", "")
    if value in ("ultrawide", "uw", "0.5x"):
        return LensKind.ULTRAWIDE
    if value in ("wide", "main", "1x"):
        return LensKind.WIDE
    if value in ("tele", "telephoto"):
        return LensKind.TELE
    raise ValueError(f"Unsupported lens kind: {kind}")


def order_lenses(lenses: Iterable[LensOption], prefer: Sequence[str] = ("wide", "ultrawide", "tele")) -> List[LensOption]:
    """Sort lenses by the template's preferred kinds; unknown kinds go last."""
    order: List[LensKind] = []
    for item in prefer:
        try:
            kind = normalize_kind(item)
        except ValueError:
            continue
        if kind not in order:
            order.append(kind)

    def _rank(lens: LensOption) -> int:
        return order.index(lens.kind) if lens.kind in order else len(order)

    return sorted(lenses, key=_rank)


def find_lens(lenses: Iterable[LensOption], lens_id: Optional[str]) -> Optional[LensOption]:
    if lens_id is None:
        return None
    for lens in lenses:
        if lens.lens_id == lens_id:
            return lens
    return None
