"""Test doubles shared across unit tests."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from lostfound.core.errors import (
    ClassificationError,
    ClassifierInitializationError,
    PersistenceError,
)
from lostfound.core.matching.models import ClassificationPrediction, MatchCandidate
from lostfound.core.persistence import candidate_to_record
from lostfound.db.models import MatchRecord


def predictions(*pairs: tuple[str, float]) -> list[ClassificationPrediction]:
    """Build a prediction list from (label, probability) pairs."""
    return [ClassificationPrediction(label=label, probability=p) for label, p in pairs]


class FakeClassifier:
    """In-memory ImageClassifier.

    Args:
        labels: image_ref -> predictions, or an exception to raise for that image
        fail_initialize: Raise ClassifierInitializationError from initialize()
    """

    def __init__(
        self,
        labels: Mapping[str, Sequence[ClassificationPrediction] | Exception] | None = None,
        fail_initialize: bool = False,
    ) -> None:
        self.labels = dict(labels or {})
        self.fail_initialize = fail_initialize
        self.initialize_calls = 0
        self.classify_calls: list[str] = []

    async def initialize(self) -> None:
        self.initialize_calls += 1
        if self.fail_initialize:
            raise ClassifierInitializationError("model weights missing")

    async def classify(self, image_ref: str) -> list[ClassificationPrediction]:
        self.classify_calls.append(image_ref)
        entry = self.labels.get(image_ref)
        if entry is None:
            raise ClassificationError("unknown image", image_ref=image_ref)
        if isinstance(entry, Exception):
            raise entry
        return list(entry)


class RecordingStore:
    """MatchStore that keeps saved candidates in memory, or fails on demand."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[list[MatchCandidate]] = []

    async def save_candidates(self, candidates: Sequence[MatchCandidate]) -> list[MatchRecord]:
        self.calls.append(list(candidates))
        if self.error is not None:
            raise self.error
        return [candidate_to_record(c) for c in candidates]


def failing_store(message: str = "matches table is read-only") -> RecordingStore:
    return RecordingStore(error=PersistenceError(message))
