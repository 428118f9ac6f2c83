"""Visual similarity from image-classification labels."""

from __future__ import annotations

from collections.abc import Sequence

from .config import MatchingConfig, get_matching_config
from .lexical import clamp01, count_similar
from .lexicon import DEFAULT_LEXICON, Lexicon, get_lexicon
from .models import ClassificationPrediction


def label_words(label: str) -> list[str]:
    """Words of the first comma-separated descriptor of a label.

    Classifier labels often list synonyms ("tabby, tabby cat"); only the
    first one is compared.
    """
    return label.lower().split(",")[0].split()


def class_similarity(label1: str, label2: str, lexicon: Lexicon = DEFAULT_LEXICON) -> float:
    """Share of label1's words with a similar word in label2.

    Divided by the larger word count so partial label overlap scores lower.
    """
    words1 = label_words(label1)
    words2 = label_words(label2)
    if not words1 or not words2:
        return 0.0
    return count_similar(words1, words2, lexicon) / max(len(words1), len(words2))


def image_similarity(
    predictions1: Sequence[ClassificationPrediction],
    predictions2: Sequence[ClassificationPrediction],
    lexicon: Lexicon = DEFAULT_LEXICON,
    config: MatchingConfig | None = None,
) -> float:
    """Compare two images through their top-ranked classifier labels.

    Rank i of one list is compared with rank i of the other; each label
    similarity is weighted by the mean probability at that rank, and the
    sum is averaged over the ranks compared.

    Args:
        predictions1: Predictions for the first image, most probable first
        predictions2: Predictions for the second image, most probable first
        lexicon: Word tables for the word-similarity rule
        config: Matching configuration (if None, loads from settings file)

    Returns:
        Visual similarity in [0, 1]; 0 if either list is empty
    """
    if not predictions1 or not predictions2:
        return 0.0

    if config is None:
        config = get_matching_config()

    top_n = min(len(predictions1), len(predictions2), config.max_compared_predictions)
    if top_n == 0:
        return 0.0

    score = 0.0
    for pred1, pred2 in zip(predictions1[:top_n], predictions2[:top_n], strict=True):
        probability = (pred1.probability + pred2.probability) / 2
        score += class_similarity(pred1.label, pred2.label, lexicon) * probability

    return clamp01(score / top_n)


class VisualComparator:
    """Image similarity bound to a lexicon and matching configuration."""

    def __init__(
        self,
        lexicon: Lexicon | None = None,
        config: MatchingConfig | None = None,
    ) -> None:
        self.lexicon = lexicon if lexicon is not None else get_lexicon()
        self.config = config if config is not None else get_matching_config()

    def compare(
        self,
        predictions1: Sequence[ClassificationPrediction],
        predictions2: Sequence[ClassificationPrediction],
    ) -> float:
        return image_similarity(predictions1, predictions2, self.lexicon, self.config)
