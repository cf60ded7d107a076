from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum


class ExecutionStrategy(str, Enum):
    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def resolve_strategy(value: str | None) -> ExecutionStrategy:
    mode = (value or os.getenv("UNBIND_STRATEGY") or ExecutionStrategy.SEQUENTIAL.value).lower()
    try:
        return ExecutionStrategy(mode)
    except ValueError:
        return ExecutionStrategy.SEQUENTIAL


@dataclass
class AnalysisPolicy:
    strategy: ExecutionStrategy = ExecutionStrategy.SEQUENTIAL
    # Drops near-whole-image boxes, a common false positive of open-vocabulary detectors.
    filter_full_image_boxes: bool = True
    full_image_ratio: float = 80.0
    verify: bool = False
    detection_timeout: float = 120.0
    extraction_timeout: float = 60.0
    verification_timeout: float = 20.0

    @classmethod
    def from_env(cls) -> "AnalysisPolicy":
        defaults = cls()
        return cls(
            strategy=resolve_strategy(None),
            filter_full_image_boxes=_env_bool("UNBIND_FILTER_FULL_IMAGE", defaults.filter_full_image_boxes),
            full_image_ratio=_env_float("UNBIND_FULL_IMAGE_RATIO", defaults.full_image_ratio),
            verify=_env_bool("UNBIND_VERIFY", defaults.verify),
            detection_timeout=_env_float("UNBIND_DETECTION_TIMEOUT", defaults.detection_timeout),
            extraction_timeout=_env_float("UNBIND_EXTRACTION_TIMEOUT", defaults.extraction_timeout),
            verification_timeout=_env_float("UNBIND_VERIFICATION_TIMEOUT", defaults.verification_timeout),
        )


__all__ = ["AnalysisPolicy", "ExecutionStrategy", "resolve_strategy"]
