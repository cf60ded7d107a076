from __future__ import annotations

import json
import logging
import os
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from unbind.errors import ExtractionFailure
from unbind.io.input import to_data_uri
from unbind.models import BookInfo
from unbind.ocr.backends.base import BackendUnavailable, ExtractionConfig, SpineExtractor

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are analyzing a cropped image of a single book spine or cover.
Extract the title and author if visible. Be concise.
Respond in JSON format: {"title": "...", "author": "...", "confidence": 0.0-1.0}
If you cannot read the title, use null.
If you cannot read the author, use null.
The confidence should reflect how certain you are about the text extraction."""

DEFAULT_CONFIDENCE = 0.5


def _clean_text(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _clean_confidence(value: object) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_completion(content: Optional[str]) -> BookInfo:
    if not content:
        return BookInfo.empty()
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        logger.warning("Extraction completion was not JSON: %r", content[:80])
        return BookInfo.empty()
    if not isinstance(parsed, dict) or ("title" not in parsed and "author" not in parsed):
        return BookInfo.empty()

    title = _clean_text(parsed.get("title"))
    author = _clean_text(parsed.get("author"))
    confidence = _clean_confidence(parsed.get("confidence"))
    if confidence is None:
        confidence = DEFAULT_CONFIDENCE if (title or author) else 0.0
    return BookInfo(title=title, author=author, confidence=confidence)


class OpenAIVisionBackend(SpineExtractor):
    name = "openai"

    def __init__(self, config: ExtractionConfig | None = None, client: AsyncOpenAI | None = None):
        self.config = config or ExtractionConfig.from_env()
        self._client = client

    def is_available(self) -> bool:
        return self._client is not None or bool(os.getenv("OPENAI_API_KEY"))

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.is_available():
                raise BackendUnavailable("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(timeout=self.config.request_timeout)
        return self._client

    async def extract(self, spine_b64: str) -> BookInfo:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "image_url", "image_url": {"url": to_data_uri(spine_b64)}},
                        ],
                    },
                ],
                response_format={"type": "json_object"},
                max_tokens=self.config.max_tokens,
            )
        except OpenAIError as exc:
            raise ExtractionFailure(f"Extraction request failed: {exc}") from exc
        if not response.choices:
            return BookInfo.empty()
        return parse_completion(response.choices[0].message.content)


__all__ = ["OpenAIVisionBackend", "SYSTEM_PROMPT", "parse_completion"]
