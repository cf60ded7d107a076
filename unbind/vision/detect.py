from __future__ import annotations

import asyncio
import json
import logging
import math
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from unbind.errors import DetectionError
from unbind.io.input import to_data_uri
from unbind.vision.models import BoundingBox, Detection

logger = logging.getLogger(__name__)

REPLICATE_API_URL = "https://api.replicate.com/v1/predictions"
GROUNDING_DINO_VERSION = "efd10a8ddc57ea28773327e881ce95e20cc1d734c589f7dd01d2036921ed78aa"
_TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}

_WRAPPER_KEYS = ("detections", "output", "predictions")
_BOX_KEYS = ("box", "bbox", "xyxy")
_CONFIDENCE_KEYS = ("confidence", "score")
_LABEL_KEYS = ("label", "class")


@dataclass
class DetectorConfig:
    api_token: Optional[str] = None
    api_url: str = REPLICATE_API_URL
    model_version: str = GROUNDING_DINO_VERSION
    query: str = "single book spine"
    box_threshold: float = 0.18
    text_threshold: float = 0.18
    poll_interval: float = 1.0
    request_timeout: float = 60.0
    extra_input: Dict[str, object] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "DetectorConfig":
        return cls(api_token=os.getenv("REPLICATE_API_TOKEN"))


def _unwrap(output: object) -> List[object]:
    if isinstance(output, list):
        return output
    if isinstance(output, dict):
        for key in _WRAPPER_KEYS:
            value = output.get(key)
            if isinstance(value, list):
                return value
    return []


def _first_present(entry: Dict[str, object], keys: Sequence[str]) -> object:
    for key in keys:
        value = entry.get(key)
        if value is not None:
            return value
    return None


def _coerce_box(raw: object) -> BoundingBox | None:
    if not isinstance(raw, (list, tuple)) or len(raw) < 4:
        return None
    try:
        coords = [float(value) for value in raw[:4]]
    except (TypeError, ValueError):
        return None
    if not all(math.isfinite(value) for value in coords):
        return None
    return BoundingBox.from_xyxy(coords)


def _coerce_confidence(raw: object) -> float:
    try:
        value = float(raw) if raw is not None else 0.5
    except (TypeError, ValueError):
        return 0.5
    return value if math.isfinite(value) else 0.5


def parse_detections(output: object) -> List[Detection]:
    """Decode a loosely typed detector payload into detections sorted left to right.

    Known wrappers are tried in priority order; an unrecognised payload yields
    an empty list rather than an error. Entries without a usable box are dropped.
    """
    detections: List[Detection] = []
    for entry in _unwrap(output):
        if not isinstance(entry, dict):
            continue
        box = _coerce_box(_first_present(entry, _BOX_KEYS))
        if box is None:
            continue
        label = _first_present(entry, _LABEL_KEYS)
        detections.append(
            Detection(
                label=str(label) if label is not None else "book",
                confidence=_coerce_confidence(_first_present(entry, _CONFIDENCE_KEYS)),
                box=box,
            )
        )
    return sorted(detections, key=lambda det: det.box.x)


class ReplicateDetector:
    name = "grounding-dino"

    def __init__(
        self,
        config: DetectorConfig | None = None,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ):
        self.config = config or DetectorConfig.from_env()
        self._client_factory = client_factory or (lambda: httpx.AsyncClient(timeout=self.config.request_timeout))

    def _headers(self) -> Dict[str, str]:
        if not self.config.api_token:
            raise DetectionError("REPLICATE_API_TOKEN is not configured")
        return {
            "Authorization": f"Bearer {self.config.api_token}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }

    def _payload(self, image_b64: str) -> Dict[str, object]:
        inputs: Dict[str, object] = {
            "image": to_data_uri(image_b64),
            "query": self.config.query,
            "box_threshold": self.config.box_threshold,
            "text_threshold": self.config.text_threshold,
        }
        inputs.update(self.config.extra_input)
        return {"version": self.config.model_version, "input": inputs}

    async def detect(self, image_b64: str) -> List[Detection]:
        headers = self._headers()
        try:
            async with self._client_factory() as client:
                response = await client.post(self.config.api_url, headers=headers, json=self._payload(image_b64))
                response.raise_for_status()
                prediction = response.json()
                prediction = await self._wait_for_prediction(client, prediction, headers)
        except httpx.HTTPError as exc:
            raise DetectionError(f"Detection request failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise DetectionError(f"Detection response was not JSON: {exc}") from exc

        status = prediction.get("status")
        if status != "succeeded":
            raise DetectionError(f"Detection prediction {status or 'unknown'}: {prediction.get('error') or 'no output'}")
        output = prediction.get("output")
        logger.debug("Grounding DINO raw output: %s", output)
        detections = parse_detections(output)
        logger.info("Detector returned %d usable boxes", len(detections))
        return detections

    async def _wait_for_prediction(
        self,
        client: httpx.AsyncClient,
        prediction: Dict[str, object],
        headers: Dict[str, str],
    ) -> Dict[str, object]:
        while prediction.get("status") not in _TERMINAL_STATUSES:
            poll_url = (prediction.get("urls") or {}).get("get")
            if not poll_url:
                raise DetectionError("Detection prediction did not finish and has no poll URL")
            await asyncio.sleep(self.config.poll_interval)
            response = await client.get(poll_url, headers=headers)
            response.raise_for_status()
            prediction = response.json()
        return prediction


def filter_full_image_boxes(
    detections: Sequence[Detection],
    image_size: Tuple[int, int],
    ratio: float = 80.0,
) -> List[Detection]:
    width, height = image_size
    kept: List[Detection] = []
    for det in detections:
        percent = det.box.to_percent(width, height)
        if percent.width >= ratio and percent.height >= ratio:
            logger.info("Dropping whole-image detection %s", det.box.as_tuple())
            continue
        kept.append(det)
    return kept


__all__ = [
    "DetectorConfig",
    "ReplicateDetector",
    "filter_full_image_boxes",
    "parse_detections",
]
