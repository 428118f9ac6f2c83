"""Match search - all-pairs comparison of lost and found reports."""

from __future__ import annotations

import asyncio
import copy
import time
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

import structlog

from lostfound.core.errors import PersistenceError
from lostfound.core.metrics import (
    match_candidates_total,
    match_pairs_compared_total,
    match_search_duration_seconds,
    match_searches_total,
    persistence_failures_total,
)
from lostfound.core.tracing import trace_context
from lostfound.core.vision.classifier import CachingClassifier

from .config import MatchingConfig, get_matching_config
from .evaluator import SimilarityAggregator
from .models import (
    MatchCandidate,
    MatchSearchResult,
    Report,
    ReportKind,
    SimilarityResult,
)

if TYPE_CHECKING:
    from lostfound.core.persistence import MatchStore

logger = structlog.get_logger("lostfound.matching.search")


def split_reports(reports: Iterable[Report]) -> tuple[list[Report], list[Report]]:
    """Partition a mixed collection into (lost, found), keeping order."""
    lost: list[Report] = []
    found: list[Report] = []
    for report in reports:
        (lost if report.kind == ReportKind.LOST else found).append(report)
    return lost, found


def rank_candidates(
    pairs: Iterable[tuple[Report, Report, SimilarityResult]],
    threshold: float,
) -> list[MatchCandidate]:
    """Keep pairs scoring strictly above threshold, best first.

    The sort is stable, so ties keep pair-generation order.
    """
    candidates = [
        MatchCandidate(lost_report=lost, found_report=found, similarity=similarity)
        for lost, found, similarity in pairs
        if similarity.score > threshold
    ]
    candidates.sort(key=lambda c: c.similarity.score, reverse=True)
    return candidates


class MatchSearch:
    """Scan every lost/found pair and propose the likely matches.

    Args:
        aggregator: Pair scorer; its classifier must be initializable
        store: Optional sink for the ranked candidates
        config: Matching configuration (if None, loads from settings file)
        max_concurrent_pairs: Pairs scored at the same time (1 = sequential)
        cache_classifications: Classify each distinct image once per search
    """

    def __init__(
        self,
        aggregator: SimilarityAggregator,
        store: MatchStore | None = None,
        config: MatchingConfig | None = None,
        max_concurrent_pairs: int = 1,
        cache_classifications: bool = True,
    ) -> None:
        if max_concurrent_pairs < 1:
            raise ValueError("max_concurrent_pairs must be at least 1")
        self.aggregator = aggregator
        self.store = store
        self.config = config if config is not None else get_matching_config()
        self.max_concurrent_pairs = max_concurrent_pairs
        self.cache_classifications = cache_classifications

    async def find_matches(
        self,
        lost_reports: Sequence[Report],
        found_reports: Sequence[Report],
        threshold: float | None = None,
    ) -> MatchSearchResult:
        """Score the full cross product and persist the ranked candidates.

        Args:
            lost_reports: Lost item reports
            found_reports: Found item reports
            threshold: Candidates must score strictly above this
                (default: config.minimum_confidence)

        Returns:
            MatchSearchResult; persistence_error is set if the store failed

        Raises:
            ClassifierInitializationError: If the classifier cannot be loaded
        """
        if threshold is None:
            threshold = self.config.minimum_confidence

        with trace_context() as search_id:
            start = time.perf_counter()

            classifier = self.aggregator.classifier
            if classifier is not None:
                await classifier.initialize()

            logger.info(
                "Starting match search",
                lost_count=len(lost_reports),
                found_count=len(found_reports),
                threshold=threshold,
                max_concurrent_pairs=self.max_concurrent_pairs,
            )

            scored = await self._score_pairs(lost_reports, found_reports)
            candidates = rank_candidates(scored, threshold)

            match_pairs_compared_total.inc(len(scored))
            match_candidates_total.inc(len(candidates))

            result = MatchSearchResult(
                candidates=candidates,
                pairs_compared=len(scored),
                search_id=search_id,
            )

            if candidates:
                result = await self._persist(result)

            duration = time.perf_counter() - start
            match_search_duration_seconds.observe(duration)
            match_searches_total.inc()

            logger.info(
                "Match search finished",
                pairs_compared=result.pairs_compared,
                candidates=len(result.candidates),
                persisted=result.persisted,
                persistence_failed=result.persistence_error is not None,
                duration_seconds=round(duration, 3),
            )
            return result

    async def _score_pairs(
        self,
        lost_reports: Sequence[Report],
        found_reports: Sequence[Report],
    ) -> list[tuple[Report, Report, SimilarityResult]]:
        """Score all pairs, lost-major, returning them in generation order."""
        pairs = [(lost, found) for lost in lost_reports for found in found_reports]
        if not pairs:
            return []

        aggregator = self.aggregator
        if self.cache_classifications and aggregator.classifier is not None:
            aggregator = copy.copy(aggregator)
            aggregator.classifier = CachingClassifier(self.aggregator.classifier)  # type: ignore[arg-type]

        semaphore = asyncio.Semaphore(self.max_concurrent_pairs)

        async def score(lost: Report, found: Report) -> SimilarityResult:
            async with semaphore:
                outcome = await aggregator.evaluate(lost, found)
            if outcome.degraded:
                logger.warning(
                    "Pair scored on fallback path",
                    lost_id=lost.id,
                    found_id=found.id,
                    error=outcome.error,
                )
            return outcome.result

        if self.max_concurrent_pairs == 1:
            results = [await score(lost, found) for lost, found in pairs]
        else:
            results = list(await asyncio.gather(*(score(lost, found) for lost, found in pairs)))

        return [(lost, found, res) for (lost, found), res in zip(pairs, results, strict=True)]

    async def _persist(self, result: MatchSearchResult) -> MatchSearchResult:
        if self.store is None:
            return result
        try:
            records = await self.store.save_candidates(result.candidates)
        except Exception as e:
            # The ranked list stays valid when the store fails
            persistence_failures_total.inc()
            logger.error(
                "Saving match candidates failed",
                error=str(e),
                error_type=type(e).__name__,
                expected=isinstance(e, PersistenceError),
            )
            return result.model_copy(update={"persistence_error": str(e)})

        return result.model_copy(update={"persisted": len(records)})
