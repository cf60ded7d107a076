from __future__ import annotations

import asyncio
import logging

from unbind.models import BookInfo
from unbind.ocr.backends.base import SpineExtractor

logger = logging.getLogger(__name__)


async def extract_book_info(extractor: SpineExtractor, spine_b64: str, timeout: float | None = None) -> BookInfo:
    """Run one spine through the extractor; failures become an empty result."""
    try:
        return await asyncio.wait_for(extractor.extract(spine_b64), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Extraction via %s timed out after %ss", extractor.name, timeout)
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # one unreadable spine must not abort the batch
        logger.warning("Extraction via %s failed: %s", extractor.name, exc)
    return BookInfo.empty()


__all__ = ["extract_book_info"]
