from unbind.ocr.backends.base import BackendUnavailable, ExtractionConfig, SpineExtractor

__all__ = ["BackendUnavailable", "ExtractionConfig", "SpineExtractor"]
