"""Error types raised by the matching engine.

Only initialization failures are fatal. Classification failures degrade a
pair's image score to zero, and persistence failures are reported alongside
the ranked candidates instead of replacing them.
"""

from __future__ import annotations


class MatchingError(Exception):
    """Base class for matching engine errors."""


class ClassifierInitializationError(MatchingError):
    """The image-classification capability could not be loaded."""


class ImageClassificationError(MatchingError):
    """A single image could not be classified.

    Attributes:
        image_ref: URL or path of the image that failed
    """

    def __init__(self, message: str, image_ref: str | None = None):
        super().__init__(message)
        self.image_ref = image_ref


class ImageLoadError(ImageClassificationError):
    """The image could not be fetched or decoded."""


class ClassificationError(ImageClassificationError):
    """The classifier failed or timed out on a loaded image."""


class PersistenceError(MatchingError):
    """The persistence collaborator rejected a bulk insert of candidates."""
