from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from unbind.vision.models import BoundingBox


class AnalyzerStatus(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    EXTRACTING = "extracting"
    COMPLETE = "complete"
    ERROR = "error"


def book_id(index: int) -> str:
    return f"book-{index}"


@dataclass(frozen=True)
class DetectionBook:
    id: str
    bounding_box: BoundingBox
    detection_confidence: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "boundingBox": self.bounding_box.to_dict(),
            "detectionConfidence": self.detection_confidence,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, object]) -> "DetectionBook":
        box = payload.get("boundingBox") or {}
        return cls(
            id=str(payload["id"]),
            bounding_box=BoundingBox(
                x=float(box.get("x", 0.0)),
                y=float(box.get("y", 0.0)),
                width=float(box.get("width", 0.0)),
                height=float(box.get("height", 0.0)),
            ),
            detection_confidence=float(payload.get("detectionConfidence", 0.0)),
        )


@dataclass(frozen=True)
class BookInfo:
    title: Optional[str]
    author: Optional[str]
    confidence: float

    @classmethod
    def empty(cls) -> "BookInfo":
        return cls(title=None, author=None, confidence=0.0)


@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    cover_image: Optional[str] = None
    verified_title: Optional[str] = None
    verified_author: Optional[str] = None

    @classmethod
    def unverified(cls) -> "VerificationResult":
        return cls(verified=False)


@dataclass(frozen=True)
class ExtractionResult:
    id: str
    title: Optional[str]
    author: Optional[str]
    verified: bool = False
    cover_image: Optional[str] = None
    verified_title: Optional[str] = None
    verified_author: Optional[str] = None

    @classmethod
    def build(cls, id: str, info: BookInfo, verification: VerificationResult | None = None) -> "ExtractionResult":
        verification = verification or VerificationResult.unverified()
        return cls(
            id=id,
            title=info.title,
            author=info.author,
            verified=verification.verified,
            cover_image=verification.cover_image,
            verified_title=verification.verified_title,
            verified_author=verification.verified_author,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "verified": self.verified,
            "coverImage": self.cover_image,
            "verifiedTitle": self.verified_title,
            "verifiedAuthor": self.verified_author,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, object]) -> "ExtractionResult":
        return cls(
            id=str(payload["id"]),
            title=payload.get("title"),
            author=payload.get("author"),
            verified=bool(payload.get("verified", False)),
            cover_image=payload.get("coverImage"),
            verified_title=payload.get("verifiedTitle"),
            verified_author=payload.get("verifiedAuthor"),
        )


@dataclass(frozen=True)
class AnalysisEvent:
    event: str
    data: Optional[Dict[str, object]] = None

    @classmethod
    def detections(cls, books: List[DetectionBook]) -> "AnalysisEvent":
        return cls("detections", {"total": len(books), "books": [book.to_dict() for book in books]})

    @classmethod
    def extraction(cls, result: ExtractionResult) -> "AnalysisEvent":
        return cls("extraction", result.to_dict())

    @classmethod
    def complete(cls) -> "AnalysisEvent":
        return cls("complete")

    @classmethod
    def error(cls, message: str) -> "AnalysisEvent":
        return cls("error", {"message": message})

    def to_dict(self) -> Dict[str, object]:
        return {"event": self.event, "data": self.data}


__all__ = [
    "AnalysisEvent",
    "AnalyzerStatus",
    "BookInfo",
    "DetectionBook",
    "ExtractionResult",
    "VerificationResult",
    "book_id",
]
