from unbind.vision.detect import DetectorConfig, ReplicateDetector, filter_full_image_boxes, parse_detections
from unbind.vision.models import BoundingBox, Detection
from unbind.vision.preprocess import clamp_box, crop, preprocess_for_detection, preprocess_for_ocr

__all__ = [
    "BoundingBox",
    "Detection",
    "DetectorConfig",
    "ReplicateDetector",
    "clamp_box",
    "crop",
    "filter_full_image_boxes",
    "parse_detections",
    "preprocess_for_detection",
    "preprocess_for_ocr",
]
