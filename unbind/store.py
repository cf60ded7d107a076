from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set

from unbind.models import AnalysisEvent, AnalyzerStatus, DetectionBook, ExtractionResult
from unbind.vision.models import BoundingBox

logger = logging.getLogger(__name__)

_UNSET = object()


class BookStatus(str, Enum):
    PENDING = "pending"
    EXTRACTED = "extracted"
    ACCEPTED = "accepted"
    EDITED = "edited"


@dataclass(frozen=True)
class Book:
    id: str
    bounding_box: BoundingBox
    detection_confidence: float
    title: Optional[str] = None
    author: Optional[str] = None
    verified: bool = False
    cover_image: Optional[str] = None
    verified_title: Optional[str] = None
    verified_author: Optional[str] = None
    status: BookStatus = BookStatus.PENDING
    user_edited: bool = False

    @property
    def display_title(self) -> Optional[str]:
        if self.user_edited:
            return self.title
        return self.verified_title or self.title

    @property
    def display_author(self) -> Optional[str]:
        if self.user_edited:
            return self.author
        return self.verified_author or self.author

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "boundingBox": self.bounding_box.to_dict(),
            "detectionConfidence": self.detection_confidence,
            "title": self.title,
            "author": self.author,
            "verified": self.verified,
            "coverImage": self.cover_image,
            "verifiedTitle": self.verified_title,
            "verifiedAuthor": self.verified_author,
            "status": self.status.value,
        }


@dataclass
class AnalysisSession:
    """Single-owner review state for one analysed photo.

    Stream events and user edits both go through the transition methods below;
    callers must drive them from one task. Once detections are set the list of
    books keeps its length and order until ``start_analysis`` or ``reset``.
    """

    image_b64: Optional[str] = None
    books: List[Book] = field(default_factory=list)
    current_book_index: int = 0
    status: AnalyzerStatus = AnalyzerStatus.IDLE
    error: Optional[str] = None
    _extracted_ids: Set[str] = field(default_factory=set, init=False, repr=False)

    @property
    def extracted_count(self) -> int:
        return len(self._extracted_ids)

    def set_image(self, image_b64: str) -> None:
        self.image_b64 = image_b64

    def start_analysis(self) -> None:
        self.status = AnalyzerStatus.DETECTING
        self.error = None
        self.books = []
        self._extracted_ids = set()
        self.current_book_index = 0

    def set_detections(self, detections: Sequence[DetectionBook]) -> None:
        self.books = [
            Book(
                id=det.id,
                bounding_box=det.bounding_box,
                detection_confidence=det.detection_confidence,
            )
            for det in detections
        ]
        self.status = AnalyzerStatus.EXTRACTING

    def add_extraction(self, extraction: ExtractionResult) -> None:
        index = self._index_of(extraction.id)
        if index is None:
            logger.warning("Ignoring extraction for unknown book %s", extraction.id)
            return
        book = self.books[index]
        self._extracted_ids.add(extraction.id)
        updates: Dict[str, object] = {
            "verified": extraction.verified,
            "cover_image": extraction.cover_image,
            "verified_title": extraction.verified_title,
            "verified_author": extraction.verified_author,
        }
        if not book.user_edited:
            updates["title"] = extraction.title
            updates["author"] = extraction.author
        if book.status in (BookStatus.PENDING, BookStatus.EXTRACTED):
            updates["status"] = BookStatus.EXTRACTED
        self.books[index] = replace(book, **updates)

    def set_complete(self) -> None:
        self.status = AnalyzerStatus.COMPLETE

    def set_error(self, message: str) -> None:
        self.status = AnalyzerStatus.ERROR
        self.error = message

    def set_current_book(self, index: int) -> None:
        if 0 <= index < len(self.books):
            self.current_book_index = index

    def next_book(self) -> None:
        if self.current_book_index < len(self.books) - 1:
            self.current_book_index += 1

    def prev_book(self) -> None:
        if self.current_book_index > 0:
            self.current_book_index -= 1

    def update_book(self, id: str, *, title: object = _UNSET, author: object = _UNSET) -> None:
        """Record a manual correction; pass ``None`` to clear a misread field."""
        index = self._index_of(id)
        if index is None:
            return
        updates: Dict[str, object] = {"status": BookStatus.EDITED, "user_edited": True}
        if title is not _UNSET:
            updates["title"] = title
        if author is not _UNSET:
            updates["author"] = author
        self.books[index] = replace(self.books[index], **updates)

    def accept_book(self, id: str) -> None:
        index = self._index_of(id)
        if index is None:
            return
        self.books[index] = replace(self.books[index], status=BookStatus.ACCEPTED)

    def reset(self) -> None:
        self.image_b64 = None
        self.books = []
        self.current_book_index = 0
        self.status = AnalyzerStatus.IDLE
        self._extracted_ids = set()
        self.error = None

    def apply_event(self, event: AnalysisEvent) -> None:
        data = event.data or {}
        if event.event == "detections":
            self.set_detections([DetectionBook.from_dict(item) for item in data.get("books", [])])
        elif event.event == "extraction":
            self.add_extraction(ExtractionResult.from_dict(data))
        elif event.event == "complete":
            self.set_complete()
        elif event.event == "error":
            self.set_error(str(data.get("message") or "Failed to analyze image"))
        else:
            logger.debug("Ignoring stream event %s", event.event)

    @property
    def current_book(self) -> Optional[Book]:
        if 0 <= self.current_book_index < len(self.books):
            return self.books[self.current_book_index]
        return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status.value,
            "extractedCount": self.extracted_count,
            "error": self.error,
            "books": [book.to_dict() for book in self.books],
        }

    def _index_of(self, id: str) -> Optional[int]:
        for index, book in enumerate(self.books):
            if book.id == id:
                return index
        return None


__all__ = ["AnalysisSession", "Book", "BookStatus"]
