from __future__ import annotations

import os
from typing import Callable, Dict, List

from unbind.catalog.base import CatalogSource
from unbind.catalog.sources.google_books import GoogleBooksSource
from unbind.catalog.sources.open_library import OpenLibrarySource

_FACTORIES: Dict[str, Callable[[], CatalogSource]] = {
    "google": GoogleBooksSource,
    "openlibrary": OpenLibrarySource,
}

_VALID_MODES = {"auto", "none", "google", "openlibrary"}


def resolve_verifier_mode(cli_value: str | None) -> str:
    env_mode = os.getenv("UNBIND_VERIFIER")
    mode = (cli_value or env_mode or "auto").lower()
    return mode if mode in _VALID_MODES else "auto"


def _sequence_for_mode(mode: str) -> List[str]:
    if mode == "none":
        return []
    if mode in ("google", "openlibrary"):
        return [mode]
    # auto: Google Books first, Open Library as fallback
    return ["google", "openlibrary"]


def get_sources_for_mode(mode: str) -> List[CatalogSource]:
    sources: List[CatalogSource] = []
    for name in _sequence_for_mode(mode):
        factory = _FACTORIES.get(name)
        if not factory:
            continue
        source = factory()
        if source.is_available():
            sources.append(source)
    return sources


__all__ = ["get_sources_for_mode", "resolve_verifier_mode"]
