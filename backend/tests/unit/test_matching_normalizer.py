"""Tests for report text normalization and keyword extraction."""

from __future__ import annotations

from lostfound.core.matching.lexicon import Lexicon
from lostfound.core.matching.normalizer import (
    clean_text,
    extract_keywords,
    normalize,
    stem_word,
)


class TestCleanText:
    """Test clean_text case-folding and punctuation handling."""

    def test_lowercases_and_strips_punctuation(self):
        assert clean_text("Black iPhone-12 (cracked!)") == "black iphone 12 cracked"

    def test_collapses_whitespace(self):
        assert clean_text("  red \t\n  umbrella   ") == "red umbrella"

    def test_punctuation_only(self):
        assert clean_text("?!... ---") == ""

    def test_empty(self):
        assert clean_text("") == ""

    def test_keeps_underscores_and_digits(self):
        assert clean_text("Locker_42: key") == "locker_42 key"


class TestStemWord:
    """Test light suffix stripping."""

    def test_ing(self):
        assert stem_word("charging") == "charg"

    def test_ed(self):
        assert stem_word("scratched") == "scratch"

    def test_plain_plural(self):
        assert stem_word("glasses") == "glasse"
        assert stem_word("keys") == "key"

    def test_s_rule_wins_over_es(self):
        """The "s" suffix is checked before "es", so "es" never strips."""
        assert stem_word("boxes") == "boxe"
        assert stem_word("phones") == "phone"

    def test_short_words_unstemmed(self):
        assert stem_word("bus") == "bus"
        assert stem_word("red") == "red"

    def test_only_one_suffix_removed(self):
        assert stem_word("dressings") == "dressing"

    def test_custom_suffix_order(self):
        lexicon = Lexicon(stem_suffixes=("ing", "ed", "es", "s"))
        assert stem_word("boxes", lexicon) == "box"
        assert stem_word("keys", lexicon) == "key"


class TestNormalize:
    """Test normalize tokenization."""

    def test_drops_short_tokens(self):
        assert normalize("an ID in my bag") == ["bag"]

    def test_preserves_order_and_duplicates(self):
        assert normalize("Found found near library") == ["found", "found", "near", "library"]

    def test_stems_tokens(self):
        assert normalize("Lost keys, charging cable") == ["lost", "key", "charg", "cable"]

    def test_empty(self):
        assert normalize("") == []
        assert normalize("   ") == []


class TestExtractKeywords:
    """Test stop-word removal."""

    def test_removes_stop_words(self):
        assert extract_keywords("The wallet that was found near the station") == [
            "wallet",
            "found",
            "near",
            "station",
        ]

    def test_only_stop_words(self):
        assert extract_keywords("which those where") == []

    def test_extra_stop_words(self):
        lexicon = Lexicon.from_dict({"extra_stop_words": ["near"]})
        assert extract_keywords("found near station", lexicon) == ["found", "station"]
