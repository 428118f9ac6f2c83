"""Similarity aggregator - combines text and image scores for one report pair.

The combined computation and its text-only fallback are explicit paths of
SimilarityOutcome, so callers and tests can tell which one produced a score.
"""

from __future__ import annotations

import asyncio

import structlog

from lostfound.core.errors import ImageClassificationError
from lostfound.core.metrics import similarity_fallbacks_total
from lostfound.core.vision.classifier import ImageClassifier

from .config import MatchingConfig, get_matching_config
from .lexical import LexicalComparator, clamp01
from .models import Report, SimilarityOutcome, SimilarityResult
from .visual import VisualComparator

logger = structlog.get_logger("lostfound.matching.evaluator")


class SimilarityAggregator:
    """Score a lost/found report pair.

    Args:
        classifier: Initialized image classifier; None disables visual scoring
        lexical: Text comparator (defaults built from settings)
        visual: Label comparator (defaults built from settings)
        config: Matching configuration (if None, loads from settings file)
    """

    def __init__(
        self,
        classifier: ImageClassifier | None = None,
        lexical: LexicalComparator | None = None,
        visual: VisualComparator | None = None,
        config: MatchingConfig | None = None,
    ) -> None:
        self.config = config if config is not None else get_matching_config()
        self.lexical = lexical if lexical is not None else LexicalComparator(config=self.config)
        self.visual = (
            visual
            if visual is not None
            else VisualComparator(lexicon=self.lexical.lexicon, config=self.config)
        )
        self.classifier = classifier

    async def overall_similarity(self, report1: Report, report2: Report) -> SimilarityResult:
        """Score a pair, never raising."""
        outcome = await self.evaluate(report1, report2)
        return outcome.result

    async def evaluate(self, report1: Report, report2: Report) -> SimilarityOutcome:
        """Score a pair and report which path produced the score.

        Returns:
            SimilarityOutcome with path "combined", or "fallback" if the
            combined computation failed unexpectedly
        """
        try:
            result = await self.combined_similarity(report1, report2)
        except Exception as e:
            logger.exception(
                "Combined similarity failed, using text-only fallback",
                report1_id=report1.id,
                report2_id=report2.id,
            )
            similarity_fallbacks_total.inc()
            try:
                fallback = self.fallback_similarity(report1, report2)
            except Exception:
                logger.exception(
                    "Text-only fallback failed, scoring pair as 0",
                    report1_id=report1.id,
                    report2_id=report2.id,
                )
                fallback = SimilarityResult(score=0.0, text_score=0.0, image_score=0.0)
            return SimilarityOutcome(
                result=fallback,
                path="fallback",
                error=f"{type(e).__name__}: {e}",
            )

        return SimilarityOutcome(result=result, path="combined")

    async def combined_similarity(self, report1: Report, report2: Report) -> SimilarityResult:
        """Weighted text + image score.

        Raises whatever the comparators raise; classifier failures alone are
        absorbed into an image score of 0.
        """
        full_text1 = report1.full_text
        full_text2 = report2.full_text

        text_score = self.lexical.text_similarity(full_text1, full_text2)

        has_images = report1.has_image and report2.has_image
        image_score = 0.0
        if has_images:
            image_score = await self.image_similarity(report1, report2)

        config = self.config
        if has_images:
            text_weight = config.text_weight_with_images
            image_weight = config.image_weight_with_images
        else:
            text_weight = config.text_weight_without_images
            image_weight = config.image_weight_without_images

        overall = text_score * text_weight + image_score * image_weight

        logger.debug(
            "Overall similarity calculation",
            report1_id=report1.id,
            report2_id=report2.id,
            text_score=text_score,
            image_score=image_score,
            overall_score=overall,
            text_weight=text_weight,
            image_weight=image_weight,
        )

        return SimilarityResult(
            score=clamp01(overall),
            text_score=clamp01(text_score),
            image_score=clamp01(image_score),
        )

    async def image_similarity(self, report1: Report, report2: Report) -> float:
        """Classify both images concurrently and compare their labels.

        Returns 0 when no classifier is configured or either image fails.
        The first failure cancels the other classification, so nothing
        outlives the pair.
        """
        image_ref1 = (report1.image_url or "").strip()
        image_ref2 = (report2.image_url or "").strip()
        if self.classifier is None or not image_ref1 or not image_ref2:
            return 0.0

        try:
            async with asyncio.TaskGroup() as group:
                task1 = group.create_task(self.classifier.classify(image_ref1))
                task2 = group.create_task(self.classifier.classify(image_ref2))
        except ExceptionGroup as group_error:
            # Per-image failures degrade the pair, they never abort it
            e = group_error.exceptions[0]
            logger.warning(
                "Image classification failed, image score set to 0",
                report1_id=report1.id,
                report2_id=report2.id,
                image_ref=e.image_ref if isinstance(e, ImageClassificationError) else None,
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0.0

        return self.visual.compare(task1.result(), task2.result())

    def fallback_similarity(self, report1: Report, report2: Report) -> SimilarityResult:
        """Text-only score scaled by the fallback factor, image score 0."""
        text_score = clamp01(self.lexical.text_similarity(report1.full_text, report2.full_text))
        return SimilarityResult(
            score=clamp01(text_score * self.config.fallback_text_factor),
            text_score=text_score,
            image_score=0.0,
        )
