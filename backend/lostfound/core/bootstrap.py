"""Wiring of the matching engine from settings.

Builds the classifier, aggregator, match store and MatchSearch, and runs
the one-time classifier initialization so a broken model fails here rather
than in the middle of a search.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from lostfound.core.config import Settings, get_settings
from lostfound.core.database import create_database_engine, create_session_factory, create_tables
from lostfound.core.matching.config import get_matching_config
from lostfound.core.matching.evaluator import SimilarityAggregator
from lostfound.core.matching.lexical import LexicalComparator
from lostfound.core.matching.lexicon import get_lexicon
from lostfound.core.matching.search import MatchSearch
from lostfound.core.persistence import SQLModelMatchStore
from lostfound.core.vision.classifier import ImageClassifier, TransformersImageClassifier

logger = structlog.get_logger("lostfound.bootstrap")


@dataclass
class MatchingEngine:
    """A ready-to-use MatchSearch plus the resources it owns."""

    search: MatchSearch
    store: SQLModelMatchStore
    engine: AsyncEngine
    classifier: ImageClassifier

    async def aclose(self) -> None:
        aclose = getattr(self.classifier, "aclose", None)
        if aclose is not None:
            await aclose()
        await self.engine.dispose()
        logger.info("Matching engine closed")


async def create_matching_engine(
    settings: Settings | None = None,
    classifier: ImageClassifier | None = None,
) -> MatchingEngine:
    """Build and initialize the matching engine.

    Args:
        settings: Application settings (if None, uses get_settings())
        classifier: Image classifier to use instead of the transformers one

    Returns:
        MatchingEngine whose classifier is initialized and whose database
        tables exist

    Raises:
        ClassifierInitializationError: If the classifier cannot be loaded
    """
    if settings is None:
        settings = get_settings()

    config = get_matching_config()
    lexicon = get_lexicon()

    if classifier is None:
        classifier = TransformersImageClassifier.from_settings(settings)

    engine = create_database_engine(settings.database_url, echo=settings.log_debug)
    try:
        await create_tables(engine)
        await classifier.initialize()
    except BaseException:
        await engine.dispose()
        raise

    store = SQLModelMatchStore(create_session_factory(engine))
    aggregator = SimilarityAggregator(
        classifier=classifier,
        lexical=LexicalComparator(lexicon=lexicon, config=config),
        config=config,
    )
    search = MatchSearch(
        aggregator,
        store=store,
        config=config,
        max_concurrent_pairs=settings.max_concurrent_pairs,
    )

    logger.info(
        "Matching engine ready",
        env=settings.env,
        classifier=type(classifier).__name__,
        database_file=str(settings.database_file),
        threshold=config.minimum_confidence,
        max_concurrent_pairs=settings.max_concurrent_pairs,
    )

    return MatchingEngine(search=search, store=store, engine=engine, classifier=classifier)
