from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

# Near-black cutoff on Rec.601 luma (0..255). Darker pixels count as ink.
INK_LUMA_THRESHOLD = 128

DEFAULT_SYSTEM_GAP_HEIGHT = 50
DEFAULT_PART_GAP_HEIGHT = 15


@dataclass(frozen=True)
class PixelBoundary:
    """
    Vertical extent of a detected region in pixel space (origin top-left).

    top_px is the first ink row, bottom_px is exclusive (last ink row + 1).
    """

    top_px: int
    bottom_px: int

    def __post_init__(self) -> None:
        if self.top_px < 0:
            raise ValueError(f"top_px must be non-negative, got {self.top_px}")
        if self.top_px >= self.bottom_px:
            raise ValueError(
                f"top_px must be above bottom_px, got {self.top_px} >= {self.bottom_px}"
            )

    @property
    def height(self) -> int:
        return self.bottom_px - self.top_px

    def to_dict(self) -> Dict[str, int]:
        return {"topPx": self.top_px, "bottomPx": self.bottom_px}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PixelBoundary":
        return cls(top_px=int(data["topPx"]), bottom_px=int(data["bottomPx"]))


@dataclass(frozen=True)
class SystemDetection:
    """
    A system boundary carrying the staff boundaries found inside it.
    """

    top_px: int
    bottom_px: int
    parts: Tuple[PixelBoundary, ...] = field(default_factory=tuple)

    @property
    def boundary(self) -> PixelBoundary:
        return PixelBoundary(self.top_px, self.bottom_px)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topPx": self.top_px,
            "bottomPx": self.bottom_px,
            "parts": [p.to_dict() for p in self.parts],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemDetection":
        return cls(
            top_px=int(data["topPx"]),
            bottom_px=int(data["bottomPx"]),
            parts=tuple(PixelBoundary.from_dict(p) for p in data.get("parts", ())),
        )
