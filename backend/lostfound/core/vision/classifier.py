"""Image classification adapter.

The matching engine consumes image classification as an external
capability: one explicit initialize() that loads the model (fatal on
failure), then classify() calls that may fail per image (recoverable).
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

from lostfound.core.errors import (
    ClassificationError,
    ClassifierInitializationError,
    ImageClassificationError,
    ImageLoadError,
)
from lostfound.core.metrics import classifier_duration_seconds, classifier_failures_total

from .images import ImageLoader
from .models import ClassificationPrediction

if TYPE_CHECKING:
    from PIL import Image

    from lostfound.core.config import Settings

logger = structlog.get_logger("lostfound.vision.classifier")


@runtime_checkable
class ImageClassifier(Protocol):
    """What the matching engine needs from an image classifier."""

    async def initialize(self) -> None:
        """Load the model. Safe to call repeatedly; later calls are no-ops."""
        ...

    async def classify(self, image_ref: str) -> list[ClassificationPrediction]:
        """Classify one image, most probable label first.

        Raises:
            ImageClassificationError: If the image cannot be loaded or classified
        """
        ...


def predictions_from_pipeline(raw: list[dict[str, Any]]) -> list[ClassificationPrediction]:
    """Convert transformers pipeline output to predictions sorted by probability."""
    predictions = [
        ClassificationPrediction(
            label=str(item["label"]),
            probability=min(1.0, max(0.0, float(item["score"]))),
        )
        for item in raw
    ]
    return sorted(predictions, key=lambda p: p.probability, reverse=True)


class TransformersImageClassifier:
    """Image classifier backed by a Hugging Face image-classification pipeline.

    Defaults to MobileNetV2 (ImageNet labels). The pipeline is loaded once by
    initialize(); concurrent callers share the same load.
    """

    def __init__(
        self,
        model_name: str = "google/mobilenet_v2_1.0_224",
        top_k: int = 3,
        timeout: float = 30.0,
        device: str | None = None,
        cache_dir: str | None = None,
        image_loader: ImageLoader | None = None,
    ) -> None:
        self.model_name = model_name
        self.top_k = top_k
        self.timeout = timeout
        self.device = device
        self.cache_dir = cache_dir
        self.image_loader = image_loader or ImageLoader()
        self._pipeline: Any = None
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> TransformersImageClassifier:
        return cls(
            model_name=settings.classifier_model,
            top_k=settings.classifier_top_k,
            timeout=settings.classifier_timeout_seconds,
            device=settings.classifier_device,
            cache_dir=str(settings.cache_dir / "models"),
            image_loader=ImageLoader(
                timeout=settings.image_fetch_timeout_seconds,
                max_bytes=settings.max_image_bytes,
            ),
        )

    @property
    def is_initialized(self) -> bool:
        return self._pipeline is not None

    async def initialize(self) -> None:
        """Load the classification pipeline.

        Raises:
            ClassifierInitializationError: If transformers is unavailable or
                the model cannot be loaded
        """
        if self._pipeline is not None:
            return

        async with self._init_lock:
            if self._pipeline is not None:
                return

            logger.info("Loading image classifier", model=self.model_name, device=self.device)
            start = time.perf_counter()
            try:
                self._pipeline = await asyncio.to_thread(self._build_pipeline)
            except Exception as e:
                logger.error(
                    "Failed to initialize image classifier",
                    model=self.model_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ClassifierInitializationError(
                    f"Failed to load image classifier '{self.model_name}': {e}"
                ) from e

            logger.info(
                "Image classifier loaded",
                model=self.model_name,
                duration_seconds=round(time.perf_counter() - start, 3),
            )

    def _build_pipeline(self) -> Any:
        from transformers import pipeline

        model_kwargs = {"cache_dir": self.cache_dir} if self.cache_dir else {}
        return pipeline(
            "image-classification",
            model=self.model_name,
            device=self.device,
            model_kwargs=model_kwargs,
        )

    def _run_pipeline(self, image: Image.Image) -> list[dict[str, Any]]:
        return self._pipeline(image, top_k=self.top_k)

    async def classify(self, image_ref: str) -> list[ClassificationPrediction]:
        """Fetch an image and classify it within the configured timeout.

        Raises:
            ClassifierInitializationError: If called before initialize()
            ImageLoadError: If the image cannot be fetched or decoded
            ClassificationError: If inference fails or the timeout expires
        """
        if self._pipeline is None:
            raise ClassifierInitializationError("Image classifier used before initialize()")

        start = time.perf_counter()
        try:
            return await asyncio.wait_for(self._classify(image_ref), timeout=self.timeout)
        except TimeoutError as e:
            classifier_failures_total.labels(kind="classify").inc()
            raise ClassificationError(
                f"Classification timed out after {self.timeout}s", image_ref=image_ref
            ) from e
        except ImageLoadError:
            classifier_failures_total.labels(kind="load").inc()
            raise
        except ImageClassificationError:
            classifier_failures_total.labels(kind="classify").inc()
            raise
        finally:
            classifier_duration_seconds.observe(time.perf_counter() - start)

    async def _classify(self, image_ref: str) -> list[ClassificationPrediction]:
        image = await self.image_loader.load(image_ref)
        try:
            raw = await asyncio.to_thread(self._run_pipeline, image)
        except Exception as e:
            raise ClassificationError(f"Classifier failed: {e}", image_ref=image_ref) from e

        predictions = predictions_from_pipeline(raw)
        logger.debug(
            "Classified image",
            image_ref=image_ref,
            labels=[p.label for p in predictions],
        )
        return predictions

    async def aclose(self) -> None:
        await self.image_loader.aclose()


class CachingClassifier:
    """Memoize successful classifications per image reference.

    Wraps another classifier for the duration of one match search so each
    distinct image is fetched and classified once. Failures are not cached.
    A shared classification is cancelled when its last waiter is.
    """

    def __init__(self, inner: ImageClassifier) -> None:
        self.inner = inner
        self._cache: dict[str, list[ClassificationPrediction]] = {}
        self._in_flight: dict[str, asyncio.Task[list[ClassificationPrediction]]] = {}
        self._waiters: dict[str, int] = {}

    async def initialize(self) -> None:
        await self.inner.initialize()

    async def classify(self, image_ref: str) -> list[ClassificationPrediction]:
        if image_ref in self._cache:
            return self._cache[image_ref]

        task = self._in_flight.get(image_ref)
        if task is None:
            task = asyncio.ensure_future(self.inner.classify(image_ref))
            self._in_flight[image_ref] = task

        self._waiters[image_ref] = self._waiters.get(image_ref, 0) + 1
        try:
            predictions = await asyncio.shield(task)
        except asyncio.CancelledError:
            if self._waiters[image_ref] == 1 and not task.done():
                task.cancel()
                self._forget(image_ref, task)
            raise
        finally:
            self._waiters[image_ref] -= 1
            if not self._waiters[image_ref]:
                del self._waiters[image_ref]
            if task.done():
                self._forget(image_ref, task)

        self._cache[image_ref] = predictions
        return predictions

    def _forget(self, image_ref: str, task: asyncio.Task[list[ClassificationPrediction]]) -> None:
        if self._in_flight.get(image_ref) is task:
            del self._in_flight[image_ref]

    def clear(self) -> None:
        self._cache.clear()
