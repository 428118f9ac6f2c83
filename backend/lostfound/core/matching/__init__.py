"""Matching engine for lost and found reports.

Scores lost/found report pairs from their text (token, keyword and synonym
overlap) and, when both have images, from image-classification labels,
then ranks the pairs that clear a confidence threshold.
"""

from .config import DEFAULT_CONFIG, MatchingConfig, get_matching_config, reload_matching_config
from .evaluator import SimilarityAggregator
from .lexical import (
    LexicalComparator,
    are_words_similar,
    clamp01,
    fuzzy_overlap,
    jaccard_similarity,
    length_ratio,
)
from .lexicon import DEFAULT_LEXICON, Lexicon, get_lexicon, reload_lexicon
from .models import (
    ClassificationPrediction,
    MatchCandidate,
    MatchSearchResult,
    MatchStatus,
    Report,
    ReportKind,
    SimilarityOutcome,
    SimilarityResult,
    TextSimilarityBreakdown,
)
from .normalizer import clean_text, extract_keywords, normalize, stem_word
from .search import MatchSearch, rank_candidates, split_reports
from .visual import VisualComparator, class_similarity, image_similarity

__all__ = [
    "MatchingConfig",
    "DEFAULT_CONFIG",
    "get_matching_config",
    "reload_matching_config",
    "Lexicon",
    "DEFAULT_LEXICON",
    "get_lexicon",
    "reload_lexicon",
    "clean_text",
    "normalize",
    "stem_word",
    "extract_keywords",
    "are_words_similar",
    "clamp01",
    "jaccard_similarity",
    "fuzzy_overlap",
    "length_ratio",
    "LexicalComparator",
    "class_similarity",
    "image_similarity",
    "VisualComparator",
    "SimilarityAggregator",
    "MatchSearch",
    "rank_candidates",
    "split_reports",
    "ClassificationPrediction",
    "MatchCandidate",
    "MatchSearchResult",
    "MatchStatus",
    "Report",
    "ReportKind",
    "SimilarityOutcome",
    "SimilarityResult",
    "TextSimilarityBreakdown",
]
