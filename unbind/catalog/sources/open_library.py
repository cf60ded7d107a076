from __future__ import annotations

from typing import Dict, List, Optional

import httpx

from unbind.catalog.base import CatalogCandidate, CatalogSource

OPEN_LIBRARY_SEARCH_URL = "https://openlibrary.org/search.json"
OPEN_LIBRARY_COVER_URL = "https://covers.openlibrary.org/b/id/{cover_id}-M.jpg"


def parse_docs(payload: Dict[str, object]) -> List[CatalogCandidate]:
    candidates: List[CatalogCandidate] = []
    for doc in payload.get("docs") or []:
        title = doc.get("title")
        if not title:
            continue
        cover_id = doc.get("cover_i")
        candidates.append(
            CatalogCandidate(
                title=title,
                authors=[a for a in doc.get("author_name") or [] if a],
                cover_url=OPEN_LIBRARY_COVER_URL.format(cover_id=cover_id) if cover_id else None,
                source="open_library",
            )
        )
    return candidates


class OpenLibrarySource(CatalogSource):
    name = "openlibrary"

    def __init__(self, limit: int = 5):
        self.limit = limit

    def is_available(self) -> bool:
        return True

    async def search(self, client: httpx.AsyncClient, title: str, author: Optional[str]) -> List[CatalogCandidate]:
        params: Dict[str, object] = {
            "title": title,
            "limit": self.limit,
            "fields": "title,author_name,cover_i",
        }
        if author:
            params["author"] = author
        response = await client.get(OPEN_LIBRARY_SEARCH_URL, params=params)
        response.raise_for_status()
        return parse_docs(response.json())


__all__ = ["OpenLibrarySource", "parse_docs"]
