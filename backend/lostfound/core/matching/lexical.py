"""Lexical similarity between report texts.

Each measure is a small function over token lists so it can be tested on
its own. LexicalComparator blends them with the configured weights.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import structlog

from .config import MatchingConfig, get_matching_config
from .lexicon import DEFAULT_LEXICON, Lexicon, get_lexicon
from .models import TextSimilarityBreakdown
from .normalizer import clean_text, keywords_from_tokens, tokenize

logger = structlog.get_logger("lostfound.matching.lexical")


def clamp01(value: float) -> float:
    """Clamp a score to [0, 1]."""
    return min(1.0, max(0.0, value))


def are_words_similar(word1: str, word2: str, lexicon: Lexicon = DEFAULT_LEXICON) -> bool:
    """Decide whether two words refer to the same thing.

    Rules, first hit wins:
    - exact match
    - one is the other plus "s" or "es"
    - synonym table (base word <-> variant, either direction)
    - one contains the other and their lengths differ by at most
      max_substring_length_gap

    The predicate is symmetric.
    """
    if word1 == word2:
        return True

    if word1 + "s" == word2 or word2 + "s" == word1:
        return True
    if word1 + "es" == word2 or word2 + "es" == word1:
        return True

    if lexicon.are_synonyms(word1, word2):
        return True

    if word1 in word2 or word2 in word1:
        return abs(len(word1) - len(word2)) <= lexicon.max_substring_length_gap

    return False


def count_similar(
    words1: Sequence[str], words2: Sequence[str], lexicon: Lexicon = DEFAULT_LEXICON
) -> int:
    """Count words of words1 that have at least one similar word in words2."""
    return sum(
        1 for w1 in words1 if any(are_words_similar(w1, w2, lexicon) for w2 in words2)
    )


def jaccard_similarity(tokens1: Sequence[str], tokens2: Sequence[str]) -> float:
    """Size of the token-set intersection over the size of the union."""
    set1, set2 = set(tokens1), set(tokens2)
    if not set1 or not set2:
        return 0.0
    return len(set1 & set2) / len(set1 | set2)


def fuzzy_overlap(
    words1: Sequence[str], words2: Sequence[str], lexicon: Lexicon = DEFAULT_LEXICON
) -> float:
    """Share of words with a similar counterpart on the other side.

    Matches are counted from both sides and averaged, each count divided by
    the longer list's length. When both sides agree (no repeated
    near-duplicates) this equals the one-sided count.
    """
    if not words1 or not words2:
        return 0.0

    # Both directions are averaged so text_similarity(a, b) == text_similarity(b, a)
    longest = max(len(words1), len(words2))
    forward = count_similar(words1, words2, lexicon) / longest
    backward = count_similar(words2, words1, lexicon) / longest
    return (forward + backward) / 2


def length_ratio(cleaned1: str, cleaned2: str) -> float:
    """Shorter text length over longer text length."""
    len1, len2 = len(cleaned1), len(cleaned2)
    if len1 == 0 or len2 == 0:
        return 0.0
    return min(len1, len2) / max(len1, len2)


class LexicalComparator:
    """Multi-measure text similarity.

    Combines Jaccard overlap, fuzzy word overlap, fuzzy keyword overlap and
    the length ratio of the cleaned texts into one score in [0, 1].
    """

    def __init__(
        self,
        lexicon: Lexicon | None = None,
        config: MatchingConfig | None = None,
    ) -> None:
        self.lexicon = lexicon if lexicon is not None else get_lexicon()
        self.config = config if config is not None else get_matching_config()

    def are_similar(self, word1: str, word2: str) -> bool:
        return are_words_similar(word1, word2, self.lexicon)

    def breakdown(self, text1: str, text2: str) -> TextSimilarityBreakdown:
        """Compute every sub-score and their weighted combination.

        Args:
            text1: First raw text
            text2: Second raw text

        Returns:
            TextSimilarityBreakdown (all zeros if either text is empty)
        """
        if not text1 or not text2:
            return TextSimilarityBreakdown()

        clean1 = clean_text(text1)
        clean2 = clean_text(text2)
        tokens1 = tokenize(clean1, self.lexicon)
        tokens2 = tokenize(clean2, self.lexicon)
        keywords1 = keywords_from_tokens(tokens1, self.lexicon)
        keywords2 = keywords_from_tokens(tokens2, self.lexicon)

        jaccard = jaccard_similarity(tokens1, tokens2)
        word_overlap = fuzzy_overlap(tokens1, tokens2, self.lexicon)
        keyword_overlap = fuzzy_overlap(keywords1, keywords2, self.lexicon)
        length = length_ratio(clean1, clean2)

        config = self.config
        # fsum keeps identical texts at exactly 1.0
        overall = clamp01(
            math.fsum(
                (
                    jaccard * config.jaccard_weight,
                    word_overlap * config.word_overlap_weight,
                    keyword_overlap * config.keyword_weight,
                    length * config.length_weight,
                )
            )
        )

        logger.debug(
            "Text similarity scores",
            jaccard=jaccard,
            word_overlap=word_overlap,
            keyword=keyword_overlap,
            length=length,
            overall=overall,
            text1=clean1,
            text2=clean2,
        )

        return TextSimilarityBreakdown(
            jaccard=jaccard,
            word_overlap=word_overlap,
            keyword_overlap=keyword_overlap,
            length_ratio=length,
            overall=overall,
        )

    def text_similarity(self, text1: str, text2: str) -> float:
        """Similarity of two texts in [0, 1]; 0 if either is empty."""
        return self.breakdown(text1, text2).overall
