"""Classifier output model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ClassificationPrediction(BaseModel):
    """One label produced by the image classifier."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Class label, possibly comma-separated synonyms")
    probability: float = Field(..., ge=0.0, le=1.0, description="Class probability")
