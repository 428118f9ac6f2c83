"""Word tables used by the lexical comparator.

Stop words, the synonym table and the stemming suffixes are plain immutable
data. A Lexicon can be built from the "lexicon" section of settings.json to
extend or replace the defaults without touching code.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import structlog

from lostfound.core.config import load_settings_section

logger = structlog.get_logger("lostfound.matching.lexicon")

DEFAULT_STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "can", "which", "that", "this", "these",
        "those", "then", "than", "when", "where", "why", "how", "what", "who",
    }
)  # fmt: skip

DEFAULT_SYNONYMS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "wallet": frozenset({"purse", "money", "cardholder"}),
        "brown": frozenset({"tan", "beige", "dark"}),
        "leather": frozenset({"fake", "genuine", "material"}),
        "phone": frozenset({"mobile", "cellphone", "smartphone"}),
        "keys": frozenset({"key", "keychain", "keyring"}),
        "bag": frozenset({"purse", "handbag", "backpack"}),
        "book": frozenset({"notebook", "textbook", "novel"}),
    }
)

# Checked in order, first match wins. "s" precedes "es", so with these
# defaults "es" never fires: "boxes" -> "boxe", "phones" -> "phone".
DEFAULT_STEM_SUFFIXES: tuple[str, ...] = ("ing", "ed", "s", "es")


def _freeze_synonyms(raw: Mapping[str, Iterable[str]]) -> Mapping[str, frozenset[str]]:
    return MappingProxyType(
        {base.lower(): frozenset(v.lower() for v in variants) for base, variants in raw.items()}
    )


@dataclass(frozen=True)
class Lexicon:
    """Immutable word tables for tokenizing and comparing report text.

    Attributes:
        stop_words: Words dropped by keyword extraction
        synonyms: Base word -> variants treated as equivalent (both directions)
        stem_suffixes: Suffixes stripped by the stemmer, in priority order
        min_token_length: Tokens shorter than this are dropped
        min_stem_length: Tokens of this length or shorter are not stemmed
        max_substring_length_gap: Largest length difference for substring matches
    """

    stop_words: frozenset[str] = DEFAULT_STOP_WORDS
    synonyms: Mapping[str, frozenset[str]] = field(default_factory=lambda: DEFAULT_SYNONYMS)
    stem_suffixes: tuple[str, ...] = DEFAULT_STEM_SUFFIXES
    min_token_length: int = 3
    min_stem_length: int = 4
    max_substring_length_gap: int = 2

    def are_synonyms(self, word1: str, word2: str) -> bool:
        """Check whether one word is a base term and the other one of its variants."""
        variants = self.synonyms.get(word1)
        if variants is not None and word2 in variants:
            return True
        variants = self.synonyms.get(word2)
        return variants is not None and word1 in variants

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base: Lexicon | None = None) -> Lexicon:
        """Build a lexicon from a settings mapping.

        Keys mirror the attributes. "extra_stop_words" and "extra_synonyms"
        extend the base tables instead of replacing them.
        """
        base = base or DEFAULT_LEXICON

        stop_words = frozenset(w.lower() for w in data.get("stop_words", base.stop_words))
        stop_words |= frozenset(w.lower() for w in data.get("extra_stop_words", ()))

        synonyms: dict[str, set[str]] = {
            k: set(v) for k, v in data.get("synonyms", base.synonyms).items()
        }
        for word, variants in data.get("extra_synonyms", {}).items():
            synonyms.setdefault(word, set()).update(variants)

        return cls(
            stop_words=stop_words,
            synonyms=_freeze_synonyms(synonyms),
            stem_suffixes=tuple(data.get("stem_suffixes", base.stem_suffixes)),
            min_token_length=int(data.get("min_token_length", base.min_token_length)),
            min_stem_length=int(data.get("min_stem_length", base.min_stem_length)),
            max_substring_length_gap=int(
                data.get("max_substring_length_gap", base.max_substring_length_gap)
            ),
        )


DEFAULT_LEXICON = Lexicon()

_cached_lexicon: Lexicon | None = None


def get_lexicon() -> Lexicon:
    """Get the current lexicon.

    Loads the "lexicon" section of settings.json if present, otherwise
    returns the defaults. The result is cached until reload_lexicon().
    """
    global _cached_lexicon

    if _cached_lexicon is not None:
        return _cached_lexicon

    try:
        section = load_settings_section("lexicon")
    except (OSError, ValueError) as e:
        logger.warning("Failed to read lexicon settings, using defaults", error=str(e))
        section = None

    _cached_lexicon = Lexicon.from_dict(section) if section else DEFAULT_LEXICON
    return _cached_lexicon


def reload_lexicon() -> Lexicon:
    """Drop the cached lexicon and load it again from settings."""
    global _cached_lexicon
    _cached_lexicon = None
    return get_lexicon()
