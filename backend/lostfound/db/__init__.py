"""Database models for Lostfound."""

from lostfound.db.models import MatchRecord, metadata

__all__ = ["MatchRecord", "metadata"]
