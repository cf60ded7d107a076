from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

import httpx


@dataclass(frozen=True)
class CatalogCandidate:
    title: str
    authors: List[str] = field(default_factory=list)
    cover_url: Optional[str] = None
    source: str = ""

    @property
    def primary_author(self) -> Optional[str]:
        return self.authors[0] if self.authors else None


class CatalogSource(Protocol):
    name: str

    def is_available(self) -> bool: ...

    async def search(
        self,
        client: httpx.AsyncClient,
        title: str,
        author: Optional[str],
    ) -> List[CatalogCandidate]: ...


__all__ = ["CatalogCandidate", "CatalogSource"]
