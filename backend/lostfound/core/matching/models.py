"""Pydantic models for reports, similarity scores and match candidates."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lostfound.core.vision.models import ClassificationPrediction  # noqa: F401


class ReportKind(StrEnum):
    """Whether a report describes a lost or a found item."""

    LOST = "lost"
    FOUND = "found"


class MatchStatus(StrEnum):
    """Review lifecycle of a persisted match candidate."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class Report(BaseModel):
    """A user-submitted lost or found item report."""

    model_config = ConfigDict(frozen=True)

    id: int | str = Field(..., description="Identifier assigned by the report store")
    title: str = Field(default="", description="Short item title")
    description: str = Field(default="", description="Free-text item description")
    image_url: str | None = Field(default=None, description="Image URL or local path")
    kind: ReportKind = Field(..., description="lost or found")
    location: str | None = Field(default=None, description="Where the item was lost/found")
    created_at: datetime | None = Field(default=None, description="Submission time")
    user_id: str | None = Field(default=None, description="Reporting user")

    @field_validator("title", "description", mode="before")
    @classmethod
    def _none_as_empty(cls, value: str | None) -> str:
        return value or ""

    @property
    def full_text(self) -> str:
        """Title and description joined by a space, trimmed."""
        return f"{self.title} {self.description}".strip()

    @property
    def has_image(self) -> bool:
        """True if the report carries a non-blank image reference."""
        return bool(self.image_url and self.image_url.strip())


class SimilarityResult(BaseModel):
    """Scores for one lost/found pair. All values are in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(..., ge=0.0, le=1.0, description="Overall confidence")
    text_score: float = Field(..., ge=0.0, le=1.0, description="Lexical similarity")
    image_score: float = Field(..., ge=0.0, le=1.0, description="Visual similarity")


class SimilarityOutcome(BaseModel):
    """Similarity result tagged with the path that produced it.

    "combined" is the normal text+image computation. "fallback" means the
    combined computation failed and the score is the text-only score scaled
    by the fallback factor.
    """

    model_config = ConfigDict(frozen=True)

    result: SimilarityResult
    path: Literal["combined", "fallback"] = "combined"
    error: str | None = Field(default=None, description="Failure that forced the fallback")

    @property
    def degraded(self) -> bool:
        return self.path == "fallback"


class TextSimilarityBreakdown(BaseModel):
    """The four lexical sub-scores and their weighted combination."""

    model_config = ConfigDict(frozen=True)

    jaccard: float = 0.0
    word_overlap: float = 0.0
    keyword_overlap: float = 0.0
    length_ratio: float = 0.0
    overall: float = 0.0


class MatchCandidate(BaseModel):
    """A lost/found pair whose confidence cleared the search threshold."""

    model_config = ConfigDict(frozen=True)

    lost_report: Report
    found_report: Report
    similarity: SimilarityResult

    @property
    def score(self) -> float:
        return self.similarity.score


class MatchSearchResult(BaseModel):
    """Outcome of one all-pairs match search.

    The ranked candidates are valid even when persistence_error is set.
    """

    candidates: list[MatchCandidate] = Field(default_factory=list)
    pairs_compared: int = 0
    persisted: int = Field(default=0, description="Rows written by the match store")
    persistence_error: str | None = Field(
        default=None, description="Why saving the candidates failed, if it did"
    )
    search_id: str | None = None
