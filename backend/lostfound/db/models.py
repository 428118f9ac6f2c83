"""Database models for persisted match candidates.

Models follow these patterns:
- Table names use plural, snake_case: matches
- Use uuid.uuid4().hex for IDs (32 character hex strings)
- Timestamps are integer Unix seconds
"""

from __future__ import annotations

import time
import uuid

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

# SQLModel metadata - all models with table=True register here
metadata = SQLModel.metadata


class MatchRecord(SQLModel, table=True):
    """A proposed lost/found match awaiting (or after) admin review."""

    __tablename__ = "matches"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    # Report ids come from the external report store and may be numeric or text
    lost_item_id: str = Field(index=True)
    found_item_id: str = Field(index=True)
    confidence: float
    text_score: float = 0.0
    image_score: float = 0.0
    status: str = Field(default="pending", index=True)  # pending, confirmed, rejected
    search_id: str | None = Field(default=None, index=True)

    created_at: int = Field(default_factory=lambda: int(time.time()))
    updated_at: int = Field(default_factory=lambda: int(time.time()))

    __table_args__ = (Index("idx_matches_pair", "lost_item_id", "found_item_id"),)
