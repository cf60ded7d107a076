from unbind.ocr.backends.base import BackendUnavailable, ExtractionConfig, SpineExtractor
from unbind.ocr.backends.openai_backend import OpenAIVisionBackend, parse_completion
from unbind.ocr.extract import extract_book_info

__all__ = [
    "BackendUnavailable",
    "ExtractionConfig",
    "OpenAIVisionBackend",
    "SpineExtractor",
    "extract_book_info",
    "parse_completion",
]
