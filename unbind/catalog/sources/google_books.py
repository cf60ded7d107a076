from __future__ import annotations

import os
from typing import Dict, List, Optional

import httpx

from unbind.catalog.base import CatalogCandidate, CatalogSource

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"


def _cover_url(volume: Dict[str, object]) -> Optional[str]:
    links = volume.get("imageLinks") or {}
    url = links.get("thumbnail") or links.get("smallThumbnail")
    if not url:
        return None
    return url.replace("http://", "https://", 1)


def parse_volumes(payload: Dict[str, object]) -> List[CatalogCandidate]:
    candidates: List[CatalogCandidate] = []
    for item in payload.get("items") or []:
        volume = item.get("volumeInfo") or {}
        title = volume.get("title")
        if not title:
            continue
        subtitle = volume.get("subtitle")
        candidates.append(
            CatalogCandidate(
                title=f"{title}: {subtitle}" if subtitle else title,
                authors=[a for a in volume.get("authors") or [] if a],
                cover_url=_cover_url(volume),
                source="google_books",
            )
        )
    return candidates


class GoogleBooksSource(CatalogSource):
    name = "google"

    def __init__(self, api_key: str | None = None, max_results: int = 5):
        self.api_key = api_key if api_key is not None else os.getenv("GOOGLE_BOOKS_API_KEY")
        self.max_results = max_results

    def is_available(self) -> bool:
        return True

    async def search(self, client: httpx.AsyncClient, title: str, author: Optional[str]) -> List[CatalogCandidate]:
        query = f"intitle:{title}"
        if author:
            query += f" inauthor:{author}"
        params: Dict[str, object] = {"q": query, "maxResults": self.max_results, "printType": "books"}
        if self.api_key:
            params["key"] = self.api_key
        response = await client.get(GOOGLE_BOOKS_URL, params=params)
        response.raise_for_status()
        return parse_volumes(response.json())


__all__ = ["GoogleBooksSource", "parse_volumes"]
