from unbind.catalog.base import CatalogCandidate, CatalogSource
from unbind.catalog.matcher import MatchPolicy, best_match
from unbind.catalog.registry import get_sources_for_mode, resolve_verifier_mode
from unbind.catalog.verify import CatalogVerifier

__all__ = [
    "CatalogCandidate",
    "CatalogSource",
    "CatalogVerifier",
    "MatchPolicy",
    "best_match",
    "get_sources_for_mode",
    "resolve_verifier_mode",
]
