from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol, Sequence, Tuple

from unbind.catalog.verify import CatalogVerifier
from unbind.errors import DetectionError, UnbindError
from unbind.io.input import ImageDimensions, dimensions
from unbind.models import (
    AnalysisEvent,
    AnalyzerStatus,
    BookInfo,
    DetectionBook,
    ExtractionResult,
    VerificationResult,
    book_id,
)
from unbind.ocr.backends.base import SpineExtractor
from unbind.ocr.backends.openai_backend import OpenAIVisionBackend
from unbind.ocr.extract import extract_book_info
from unbind.policy import AnalysisPolicy, ExecutionStrategy
from unbind.vision.detect import ReplicateDetector, filter_full_image_boxes
from unbind.vision.models import Detection
from unbind.vision.preprocess import crop, preprocess_for_detection, preprocess_for_ocr

logger = logging.getLogger(__name__)


class SpineDetector(Protocol):
    name: str

    async def detect(self, image_b64: str) -> List[Detection]: ...


class Verifier(Protocol):
    async def verify(self, title: Optional[str], author: Optional[str], spine_b64: str) -> VerificationResult: ...


@dataclass
class AnalysisServices:
    detector: SpineDetector
    extractor: SpineExtractor
    verifier: Optional[Verifier] = None

    @classmethod
    def default(cls, policy: AnalysisPolicy, verifier_mode: str | None = None) -> "AnalysisServices":
        return cls(
            detector=ReplicateDetector(),
            extractor=OpenAIVisionBackend(),
            verifier=CatalogVerifier.for_mode(verifier_mode) if policy.verify else None,
        )


def build_detection_books(detections: Sequence[Detection], size: ImageDimensions) -> List[DetectionBook]:
    """Assign positional ids and convert pixel boxes to percent of the original image."""
    return [
        DetectionBook(
            id=book_id(index),
            bounding_box=det.box.to_percent(size.width, size.height),
            detection_confidence=det.confidence,
        )
        for index, det in enumerate(detections)
    ]


class AnalysisRun:
    """One photo moving through detect -> extract -> verify.

    ``events()`` yields the stream in order: one ``detections`` event, one
    ``extraction`` event per detection, then ``complete``. Any failure ends
    the stream with a single ``error`` event instead.
    """

    def __init__(self, image_b64: str, services: AnalysisServices, policy: AnalysisPolicy | None = None):
        self.image_b64 = image_b64
        self.services = services
        self.policy = policy or AnalysisPolicy()
        self.status = AnalyzerStatus.IDLE
        self.books: List[DetectionBook] = []

    async def events(self) -> AsyncIterator[AnalysisEvent]:
        pending: List[asyncio.Task] = []
        try:
            self.status = AnalyzerStatus.DETECTING
            size = await asyncio.to_thread(dimensions, self.image_b64)
            detections = await self._detect(size)
            self.books = build_detection_books(detections, size)

            logger.info("Sending %d detections to client", len(self.books))
            yield AnalysisEvent.detections(self.books)

            self.status = AnalyzerStatus.EXTRACTING
            jobs = [(book.id, det) for book, det in zip(self.books, detections)]
            if self.policy.strategy is ExecutionStrategy.CONCURRENT:
                pending = [asyncio.create_task(self._process_book(bid, det)) for bid, det in jobs]
                for next_done in asyncio.as_completed(pending):
                    result = await next_done
                    yield AnalysisEvent.extraction(result)
            else:
                for bid, det in jobs:
                    result = await self._process_book(bid, det)
                    yield AnalysisEvent.extraction(result)

            logger.info("All extractions complete")
            self.status = AnalyzerStatus.COMPLETE
            yield AnalysisEvent.complete()
        except asyncio.CancelledError:
            raise
        except UnbindError as exc:
            self.status = AnalyzerStatus.ERROR
            logger.error("Analysis failed: %s", exc)
            yield AnalysisEvent.error(str(exc))
        except Exception as exc:
            self.status = AnalyzerStatus.ERROR
            logger.exception("Unexpected error analyzing image")
            yield AnalysisEvent.error(str(exc) or "Failed to analyze image")
        finally:
            for task in pending:
                if not task.done():
                    task.cancel()

    async def _detect(self, size: ImageDimensions) -> List[Detection]:
        logger.info("Preprocessing %dx%d image for detection", size.width, size.height)
        prepared = await asyncio.to_thread(preprocess_for_detection, self.image_b64)
        detector = self.services.detector
        try:
            detections = await asyncio.wait_for(detector.detect(prepared), timeout=self.policy.detection_timeout)
        except asyncio.TimeoutError as exc:
            raise DetectionError(f"Detection timed out after {self.policy.detection_timeout}s") from exc
        if self.policy.filter_full_image_boxes:
            detections = filter_full_image_boxes(
                detections, (size.width, size.height), ratio=self.policy.full_image_ratio
            )
        return detections

    async def _process_book(self, bid: str, detection: Detection) -> ExtractionResult:
        logger.info("Extracting info for %s", bid)
        # crop from the original upload, not the detection-enhanced copy
        cropped = await asyncio.to_thread(crop, self.image_b64, detection.box)
        spine = await asyncio.to_thread(preprocess_for_ocr, cropped)
        info = await extract_book_info(self.services.extractor, spine, timeout=self.policy.extraction_timeout)
        verification = await self._verify(info, spine)
        result = ExtractionResult.build(bid, info, verification)
        logger.info("Extraction for %s: %s", bid, info.title or "unknown")
        return result

    async def _verify(self, info: BookInfo, spine: str) -> VerificationResult:
        verifier = self.services.verifier
        if verifier is None or not info.title:
            return VerificationResult.unverified()
        try:
            return await asyncio.wait_for(
                verifier.verify(info.title, info.author, spine),
                timeout=self.policy.verification_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Verification of %r timed out", info.title)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # an unreachable catalog leaves the book unverified
            logger.warning("Verification of %r failed: %s", info.title, exc)
        return VerificationResult.unverified()


def analyze_stream(
    image_b64: str,
    services: AnalysisServices,
    policy: AnalysisPolicy | None = None,
) -> AsyncIterator[AnalysisEvent]:
    return AnalysisRun(image_b64, services, policy).events()


async def collect_events(
    image_b64: str,
    services: AnalysisServices,
    policy: AnalysisPolicy | None = None,
) -> Tuple[List[AnalysisEvent], AnalyzerStatus]:
    run = AnalysisRun(image_b64, services, policy)
    events = [event async for event in run.events()]
    return events, run.status


__all__ = [
    "AnalysisRun",
    "AnalysisServices",
    "AnalyzerStatus",
    "SpineDetector",
    "Verifier",
    "analyze_stream",
    "build_detection_books",
    "collect_events",
]
