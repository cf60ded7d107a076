from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_xyxy(cls, coords: Sequence[float]) -> "BoundingBox":
        x1, y1, x2, y2 = (float(value) for value in coords[:4])
        return cls(x=x1, y=y1, width=x2 - x1, height=y2 - y1)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def to_percent(self, image_width: int, image_height: int) -> "BoundingBox":
        if image_width <= 0 or image_height <= 0:
            raise ValueError(f"Invalid image dimensions: {image_width}x{image_height}")
        return BoundingBox(
            x=self.x / image_width * 100.0,
            y=self.y / image_height * 100.0,
            width=self.width / image_width * 100.0,
            height=self.height / image_height * 100.0,
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class Detection:
    label: str
    confidence: float
    box: BoundingBox


__all__ = ["BoundingBox", "Detection"]
