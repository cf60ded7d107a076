import asyncio
import json

import pytest

from unbind.errors import DetectionError
from unbind.models import AnalyzerStatus, BookInfo, VerificationResult
from unbind.pipeline import AnalysisServices, analyze_stream, collect_events
from unbind.policy import AnalysisPolicy, ExecutionStrategy
from unbind.vision.detect import parse_detections
from unbind.vision.models import BoundingBox, Detection


class StubDetector:
    name = "stub"

    def __init__(self, detections=None, error=None, delay=0.0):
        self.detections = list(detections or [])
        self.error = error
        self.delay = delay
        self.images = []

    async def detect(self, image_b64):
        self.images.append(image_b64)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.detections)


class StubExtractor:
    name = "stub"

    def __init__(self, infos=None, fail_on=(), delays=None):
        self.infos = list(infos or [])
        self.fail_on = set(fail_on)
        self.delays = list(delays or [])
        self.calls = 0

    def is_available(self):
        return True

    async def extract(self, spine_b64):
        index = self.calls
        self.calls += 1
        if index < len(self.delays):
            await asyncio.sleep(self.delays[index])
        if index in self.fail_on:
            raise RuntimeError("model unavailable")
        if index < len(self.infos):
            return self.infos[index]
        return BookInfo(title=f"Title {index}", author=f"Author {index}", confidence=0.8)


class StubVerifier:
    def __init__(self, result=None):
        self.result = result or VerificationResult(
            verified=True,
            cover_image="data:image/jpeg;base64,QUJD",
            verified_title="Dune",
            verified_author="Frank Herbert",
        )
        self.calls = []

    async def verify(self, title, author, spine_b64):
        self.calls.append((title, author))
        return self.result


def _spines(count, width=60, height=400):
    return [
        Detection("book", 0.9 - index * 0.1, BoundingBox(50 + index * 100, 50, width, height))
        for index in range(count)
    ]


def _run(image_b64, services, policy=None):
    return asyncio.run(collect_events(image_b64, services, policy))


def test_single_spine_reports_percent_box(shelf_image):
    detector = StubDetector([Detection("book spine", 0.9, BoundingBox.from_xyxy([100, 100, 300, 400]))])
    services = AnalysisServices(
        detector=detector,
        extractor=StubExtractor([BookInfo("Dune", "Frank Herbert", 0.9)]),
    )

    events, status = _run(shelf_image, services)

    assert [event.event for event in events] == ["detections", "extraction", "complete"]
    detections = events[0].data
    assert detections["total"] == 1
    book = detections["books"][0]
    assert book["id"] == "book-0"
    assert book["detectionConfidence"] == 0.9
    assert book["boundingBox"] == pytest.approx({"x": 10.0, "y": 20.0, "width": 20.0, "height": 60.0})
    assert events[1].data == {
        "id": "book-0",
        "title": "Dune",
        "author": "Frank Herbert",
        "verified": False,
        "coverImage": None,
        "verifiedTitle": None,
        "verifiedAuthor": None,
    }
    assert events[2].data is None
    assert status is AnalyzerStatus.COMPLETE
    assert detector.images[0].startswith("data:image/jpeg;base64,")


def test_whole_image_box_is_filtered(shelf_image):
    detector = StubDetector([Detection("book", 0.95, BoundingBox(0, 0, 1000, 500))])
    extractor = StubExtractor()

    events, status = _run(shelf_image, AnalysisServices(detector=detector, extractor=extractor))

    assert [event.event for event in events] == ["detections", "complete"]
    assert events[0].data == {"total": 0, "books": []}
    assert extractor.calls == 0
    assert status is AnalyzerStatus.COMPLETE


def test_whole_image_box_kept_when_filter_disabled(shelf_image):
    detector = StubDetector([Detection("book", 0.95, BoundingBox(0, 0, 1000, 500))])
    policy = AnalysisPolicy(filter_full_image_boxes=False)

    events, _ = _run(shelf_image, AnalysisServices(detector=detector, extractor=StubExtractor()), policy)

    assert events[0].data["total"] == 1
    assert events[0].data["books"][0]["boundingBox"] == pytest.approx(
        {"x": 0.0, "y": 0.0, "width": 100.0, "height": 100.0}
    )


def test_failed_extraction_yields_nulls_and_continues(shelf_image):
    services = AnalysisServices(detector=StubDetector(_spines(3)), extractor=StubExtractor(fail_on={0}))

    events, status = _run(shelf_image, services)

    extractions = [event.data for event in events if event.event == "extraction"]
    assert [item["id"] for item in extractions] == ["book-0", "book-1", "book-2"]
    assert extractions[0]["title"] is None
    assert extractions[0]["author"] is None
    assert extractions[1]["title"] == "Title 1"
    assert events[-1].event == "complete"
    assert status is AnalyzerStatus.COMPLETE


@pytest.mark.parametrize("strategy", [ExecutionStrategy.SEQUENTIAL, ExecutionStrategy.CONCURRENT])
def test_every_detection_gets_one_extraction(shelf_image, strategy):
    extractor = StubExtractor(delays=[0.05, 0.0, 0.02, 0.0])
    services = AnalysisServices(detector=StubDetector(_spines(4)), extractor=extractor)

    events, status = _run(shelf_image, services, AnalysisPolicy(strategy=strategy))

    names = [event.event for event in events]
    assert names[0] == "detections"
    assert names[-1] == "complete"
    assert names.count("extraction") == 4
    detected = {book["id"] for book in events[0].data["books"]}
    extracted = [event.data["id"] for event in events if event.event == "extraction"]
    assert sorted(extracted) == sorted(detected)
    assert len(set(extracted)) == 4
    assert status is AnalyzerStatus.COMPLETE


def test_sequential_order_follows_detections(shelf_image):
    services = AnalysisServices(detector=StubDetector(_spines(3)), extractor=StubExtractor(delays=[0.03, 0.0, 0.0]))

    events, _ = _run(shelf_image, services, AnalysisPolicy(strategy=ExecutionStrategy.SEQUENTIAL))

    assert [event.data["id"] for event in events[1:-1]] == ["book-0", "book-1", "book-2"]


def test_bounding_boxes_stay_within_percent_range(shelf_image):
    detections = [
        Detection("book", 0.5, BoundingBox(0, 0, 120, 500)),
        Detection("book", 0.6, BoundingBox(880, 10, 120, 490)),
        Detection("book", 0.7, BoundingBox(400, 100, 80, 300)),
    ]
    events, _ = _run(shelf_image, AnalysisServices(detector=StubDetector(detections), extractor=StubExtractor()))

    for book in events[0].data["books"]:
        box = book["boundingBox"]
        assert 0.0 <= box["x"] <= 100.0
        assert 0.0 <= box["y"] <= 100.0
        assert box["x"] + box["width"] <= 100.0 + 1e-9
        assert box["y"] + box["height"] <= 100.0 + 1e-9


def test_undecodable_image_emits_only_error():
    detector = StubDetector(_spines(1))

    events, status = _run("bm90IGFuIGltYWdl", AnalysisServices(detector=detector, extractor=StubExtractor()))

    assert [event.event for event in events] == ["error"]
    assert events[0].data["message"]
    assert detector.images == []
    assert status is AnalyzerStatus.ERROR


def test_detector_failure_emits_error(shelf_image):
    detector = StubDetector(error=DetectionError("Detection request failed: 502"))

    events, status = _run(shelf_image, AnalysisServices(detector=detector, extractor=StubExtractor()))

    assert [event.event for event in events] == ["error"]
    assert events[0].data == {"message": "Detection request failed: 502"}
    assert status is AnalyzerStatus.ERROR


def test_detector_timeout_emits_error(shelf_image):
    detector = StubDetector(_spines(1), delay=1.0)
    policy = AnalysisPolicy(detection_timeout=0.01)

    events, _ = _run(shelf_image, AnalysisServices(detector=detector, extractor=StubExtractor()), policy)

    assert [event.event for event in events] == ["error"]
    assert "timed out" in events[0].data["message"]


def test_unexpected_detector_exception_becomes_error_event(shelf_image):
    detector = StubDetector(error=KeyError("urls"))

    events, status = _run(shelf_image, AnalysisServices(detector=detector, extractor=StubExtractor()))

    assert [event.event for event in events] == ["error"]
    assert status is AnalyzerStatus.ERROR


def test_verification_fields_are_attached(shelf_image):
    verifier = StubVerifier()
    services = AnalysisServices(
        detector=StubDetector(_spines(1)),
        extractor=StubExtractor([BookInfo("DUNE", "F. Herbert", 0.7)]),
        verifier=verifier,
    )

    events, _ = _run(shelf_image, services)

    extraction = events[1].data
    assert extraction["title"] == "DUNE"
    assert extraction["verified"] is True
    assert extraction["verifiedTitle"] == "Dune"
    assert extraction["verifiedAuthor"] == "Frank Herbert"
    assert extraction["coverImage"] == "data:image/jpeg;base64,QUJD"
    assert verifier.calls == [("DUNE", "F. Herbert")]


def test_verification_skipped_without_title(shelf_image):
    verifier = StubVerifier()
    services = AnalysisServices(
        detector=StubDetector(_spines(1)),
        extractor=StubExtractor([BookInfo(None, "Someone", 0.3)]),
        verifier=verifier,
    )

    events, _ = _run(shelf_image, services)

    assert events[1].data["verified"] is False
    assert verifier.calls == []


def test_closing_stream_cancels_outstanding_extractions(shelf_image):
    cancelled = []

    class HangingExtractor(StubExtractor):
        async def extract(self, spine_b64):
            index = self.calls
            self.calls += 1
            if index == 0:
                while self.calls < 3:
                    await asyncio.sleep(0.01)
                return BookInfo("First", None, 0.6)
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.append(index)
                raise
            return BookInfo.empty()

    services = AnalysisServices(detector=StubDetector(_spines(3)), extractor=HangingExtractor())
    policy = AnalysisPolicy(strategy=ExecutionStrategy.CONCURRENT)

    async def scenario():
        stream = analyze_stream(shelf_image, services, policy)
        first = await stream.__anext__()
        second = await stream.__anext__()
        await stream.aclose()
        for _ in range(5):
            await asyncio.sleep(0.02)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.event == "detections"
    assert second.event == "extraction"
    assert sorted(cancelled) == [1, 2]


class RaisingVerifier:
    async def verify(self, title, author, spine_b64):
        raise RuntimeError("catalog unreachable")


class SlowVerifier:
    async def verify(self, title, author, spine_b64):
        await asyncio.sleep(5)
        return VerificationResult(verified=True, verified_title="Never")


@pytest.mark.parametrize("verifier", [RaisingVerifier(), SlowVerifier()], ids=["raising", "slow"])
def test_verifier_failure_leaves_books_unverified(shelf_image, verifier):
    services = AnalysisServices(detector=StubDetector(_spines(2)), extractor=StubExtractor(), verifier=verifier)
    policy = AnalysisPolicy(strategy=ExecutionStrategy.CONCURRENT, verification_timeout=0.05)

    events, status = _run(shelf_image, services, policy)

    assert [event.event for event in events] == ["detections", "extraction", "extraction", "complete"]
    for event in events[1:3]:
        assert event.data["verified"] is False
        assert event.data["verifiedTitle"] is None
        assert event.data["title"].startswith("Title ")
    assert status is AnalyzerStatus.COMPLETE


def test_non_finite_detector_box_does_not_abort_batch(shelf_image):
    payload = json.loads('{"detections": [{"box": [NaN, 10, 50, 400]}, {"box": [100, 10, 160, 400], "score": 0.7}]}')
    services = AnalysisServices(detector=StubDetector(parse_detections(payload)), extractor=StubExtractor())

    events, status = _run(shelf_image, services)

    assert [event.event for event in events] == ["detections", "extraction", "complete"]
    assert events[0].data["total"] == 1
    assert events[1].data["id"] == "book-0"
    assert status is AnalyzerStatus.COMPLETE
