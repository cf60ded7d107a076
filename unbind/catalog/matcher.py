from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from rapidfuzz import fuzz, utils as fuzz_utils

from unbind.catalog.base import CatalogCandidate


@dataclass
class MatchPolicy:
    min_title_score: float = 85.0
    min_author_score: float = 80.0
    # No author read from the spine: demand a near-exact title instead.
    title_only_score: float = 95.0


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: CatalogCandidate
    title_score: float
    author_score: Optional[float]

    @property
    def total(self) -> float:
        if self.author_score is None:
            return self.title_score
        return (self.title_score + self.author_score) / 2.0


def _similarity(left: str, right: str) -> float:
    return float(fuzz.token_set_ratio(left, right, processor=fuzz_utils.default_process))


def score_candidate(title: str, author: Optional[str], candidate: CatalogCandidate) -> ScoredCandidate:
    title_score = _similarity(title, candidate.title)
    author_score = None
    if author:
        author_score = max((_similarity(author, name) for name in candidate.authors), default=0.0)
    return ScoredCandidate(candidate=candidate, title_score=title_score, author_score=author_score)


def is_confident(scored: ScoredCandidate, policy: MatchPolicy) -> bool:
    if scored.author_score is None:
        return scored.title_score >= policy.title_only_score
    return scored.title_score >= policy.min_title_score and scored.author_score >= policy.min_author_score


def best_match(
    title: str,
    author: Optional[str],
    candidates: Sequence[CatalogCandidate],
    policy: MatchPolicy | None = None,
) -> Optional[ScoredCandidate]:
    policy = policy or MatchPolicy()
    confident = [
        scored
        for scored in (score_candidate(title, author, candidate) for candidate in candidates)
        if is_confident(scored, policy)
    ]
    if not confident:
        return None
    return max(confident, key=lambda scored: scored.total)


__all__ = ["MatchPolicy", "ScoredCandidate", "best_match", "is_confident", "score_candidate"]
