from __future__ import annotations


class UnbindError(RuntimeError):
    """Base class for analysis failures."""


class ValidationError(UnbindError):
    """Raised when the analyze request is missing or malformed."""


class DecodeError(UnbindError):
    """Raised when an image payload is not a decodable raster image."""


class DetectionError(UnbindError):
    """Raised when the remote detector cannot produce detections."""


class ExtractionFailure(UnbindError):
    """Raised by an extractor backend for a single spine; recovered by the caller."""


class VerificationMiss(UnbindError):
    """Raised when a catalog source has no confident match; handled by the verifier."""


__all__ = [
    "UnbindError",
    "ValidationError",
    "DecodeError",
    "DetectionError",
    "ExtractionFailure",
    "VerificationMiss",
]
