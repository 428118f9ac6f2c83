"""Image classification adapter consumed by the matching engine."""

from lostfound.core.vision.classifier import (
    CachingClassifier,
    ImageClassifier,
    TransformersImageClassifier,
    predictions_from_pipeline,
)
from lostfound.core.vision.images import ImageLoader, decode_image
from lostfound.core.vision.models import ClassificationPrediction

__all__ = [
    "CachingClassifier",
    "ClassificationPrediction",
    "ImageClassifier",
    "ImageLoader",
    "TransformersImageClassifier",
    "decode_image",
    "predictions_from_pipeline",
]
