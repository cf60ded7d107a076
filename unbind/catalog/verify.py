from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

import httpx

from unbind.catalog.base import CatalogSource
from unbind.catalog.matcher import MatchPolicy, ScoredCandidate, best_match
from unbind.catalog.registry import get_sources_for_mode, resolve_verifier_mode
from unbind.errors import DecodeError, VerificationMiss
from unbind.io.input import encode_jpeg, open_image_bytes, to_data_uri
from unbind.models import VerificationResult

logger = logging.getLogger(__name__)

COVER_JPEG_QUALITY = 85


class CatalogVerifier:
    """Confirms an extracted title/author against book catalogs.

    Sources are queried in order and the first confident match wins. A miss
    or a failing source is a normal ``verified=False`` outcome.
    """

    name = "catalog"

    def __init__(
        self,
        sources: Sequence[CatalogSource] | None = None,
        policy: MatchPolicy | None = None,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
        request_timeout: float = 10.0,
    ):
        self.sources: List[CatalogSource] = list(
            sources if sources is not None else get_sources_for_mode(resolve_verifier_mode(None))
        )
        self.policy = policy or MatchPolicy()
        self._client_factory = client_factory or (
            lambda: httpx.AsyncClient(timeout=request_timeout, follow_redirects=True)
        )

    @classmethod
    def for_mode(cls, mode: str | None, **kwargs) -> "CatalogVerifier":
        return cls(sources=get_sources_for_mode(resolve_verifier_mode(mode)), **kwargs)

    async def verify(self, title: Optional[str], author: Optional[str], spine_b64: str) -> VerificationResult:
        if not title or not self.sources:
            return VerificationResult.unverified()
        async with self._client_factory() as client:
            for source in self.sources:
                try:
                    match = await self._match_source(client, source, title, author)
                except VerificationMiss as exc:
                    logger.debug("%s", exc)
                    continue
                except (httpx.HTTPError, ValueError) as exc:
                    logger.warning("Catalog source %s failed for %r: %s", source.name, title, exc)
                    continue
                logger.info(
                    "Verified %r as %r via %s (title=%.0f author=%s)",
                    title,
                    match.candidate.title,
                    source.name,
                    match.title_score,
                    "n/a" if match.author_score is None else f"{match.author_score:.0f}",
                )
                cover = await self._fetch_cover(client, match.candidate.cover_url)
                return VerificationResult(
                    verified=True,
                    cover_image=cover,
                    verified_title=match.candidate.title,
                    verified_author=match.candidate.primary_author,
                )
        return VerificationResult.unverified()

    async def _match_source(
        self,
        client: httpx.AsyncClient,
        source: CatalogSource,
        title: str,
        author: Optional[str],
    ) -> ScoredCandidate:
        candidates = await source.search(client, title, author)
        match = best_match(title, author, candidates, self.policy)
        if match is None:
            raise VerificationMiss(f"No confident {source.name} match for {title!r} ({len(candidates)} candidates)")
        return match

    async def _fetch_cover(self, client: httpx.AsyncClient, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        try:
            response = await client.get(url)
            response.raise_for_status()
            image = open_image_bytes(response.content)
        except (httpx.HTTPError, DecodeError) as exc:
            logger.warning("Cover fetch failed for %s: %s", url, exc)
            return None
        return to_data_uri(encode_jpeg(image, quality=COVER_JPEG_QUALITY))


__all__ = ["CatalogVerifier"]
