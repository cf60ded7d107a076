from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol

from unbind.models import BookInfo


class BackendUnavailable(RuntimeError):
    """Raised when an extraction backend is not configured on this host."""


@dataclass
class ExtractionConfig:
    model: str = "gpt-4o"
    max_tokens: int = 150
    request_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> "ExtractionConfig":
        return cls(model=os.getenv("UNBIND_EXTRACTION_MODEL") or cls.model)


class SpineExtractor(Protocol):
    name: str

    def is_available(self) -> bool: ...

    async def extract(self, spine_b64: str) -> BookInfo: ...


__all__ = ["BackendUnavailable", "ExtractionConfig", "SpineExtractor"]
