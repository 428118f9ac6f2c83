"""Tests for the image classifier adapter."""

from __future__ import annotations

import asyncio
import io
import time

import httpx
import pytest
from fakes import predictions
from PIL import Image

from lostfound.core.config import Settings
from lostfound.core.errors import (
    ClassificationError,
    ClassifierInitializationError,
    ImageLoadError,
)
from lostfound.core.vision.classifier import (
    CachingClassifier,
    ImageClassifier,
    TransformersImageClassifier,
    predictions_from_pipeline,
)
from lostfound.core.vision.images import ImageLoader


def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), "brown").save(buffer, format="PNG")
    return buffer.getvalue()


class FakePipeline:
    """Stands in for a transformers image-classification pipeline."""

    def __init__(self, output=None, error: Exception | None = None, delay: float = 0.0):
        self.output = output or [
            {"label": "purse", "score": 0.2},
            {"label": "wallet, billfold, notecase, pocketbook", "score": 0.7},
        ]
        self.error = error
        self.delay = delay
        self.calls: list[tuple[Image.Image, int]] = []

    def __call__(self, image, top_k):
        self.calls.append((image, top_k))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def image_client():
    data = png_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/missing.png":
            return httpx.Response(404)
        return httpx.Response(200, content=data)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def build_classifier(
    monkeypatch: pytest.MonkeyPatch,
    client: httpx.AsyncClient,
    pipeline: FakePipeline | None = None,
    **kwargs,
) -> TransformersImageClassifier:
    classifier = TransformersImageClassifier(image_loader=ImageLoader(client=client), **kwargs)
    pipe = pipeline or FakePipeline()
    monkeypatch.setattr(classifier, "_build_pipeline", lambda: pipe)
    return classifier


def test_predictions_from_pipeline_sorts_and_clamps():
    result = predictions_from_pipeline(
        [{"label": "b", "score": 0.2}, {"label": "a", "score": 1.0000001}]
    )

    assert [p.label for p in result] == ["a", "b"]
    assert result[0].probability == 1.0


class TestTransformersImageClassifier:
    """Test initialization and per-image classification."""

    async def test_satisfies_protocol(self, monkeypatch, image_client):
        classifier = build_classifier(monkeypatch, image_client)
        assert isinstance(classifier, ImageClassifier)

    async def test_classify_before_initialize(self, monkeypatch, image_client):
        classifier = build_classifier(monkeypatch, image_client)

        with pytest.raises(ClassifierInitializationError):
            await classifier.classify("https://img.example.com/wallet.png")

    async def test_classify(self, monkeypatch, image_client):
        pipeline = FakePipeline()
        classifier = build_classifier(monkeypatch, image_client, pipeline, top_k=5)
        await classifier.initialize()

        result = await classifier.classify("https://img.example.com/wallet.png")

        assert result == predictions(
            ("wallet, billfold, notecase, pocketbook", 0.7), ("purse", 0.2)
        )
        image, top_k = pipeline.calls[0]
        assert image.mode == "RGB"
        assert top_k == 5

    async def test_initialize_loads_once(self, monkeypatch, image_client):
        classifier = TransformersImageClassifier(image_loader=ImageLoader(client=image_client))
        builds = []

        def build():
            builds.append(1)
            return FakePipeline()

        monkeypatch.setattr(classifier, "_build_pipeline", build)

        await asyncio.gather(classifier.initialize(), classifier.initialize())
        await classifier.initialize()

        assert classifier.is_initialized
        assert len(builds) == 1

    async def test_initialize_failure(self, monkeypatch, image_client):
        classifier = TransformersImageClassifier(
            model_name="missing/model", image_loader=ImageLoader(client=image_client)
        )

        def build():
            raise OSError("model not found on hub")

        monkeypatch.setattr(classifier, "_build_pipeline", build)

        with pytest.raises(ClassifierInitializationError, match="missing/model"):
            await classifier.initialize()
        assert not classifier.is_initialized

    async def test_image_load_failure(self, monkeypatch, image_client):
        classifier = build_classifier(monkeypatch, image_client)
        await classifier.initialize()

        with pytest.raises(ImageLoadError) as exc_info:
            await classifier.classify("https://img.example.com/missing.png")

        assert exc_info.value.image_ref == "https://img.example.com/missing.png"

    async def test_pipeline_failure(self, monkeypatch, image_client):
        pipeline = FakePipeline(error=RuntimeError("bad tensor shape"))
        classifier = build_classifier(monkeypatch, image_client, pipeline)
        await classifier.initialize()

        with pytest.raises(ClassificationError, match="bad tensor shape"):
            await classifier.classify("https://img.example.com/wallet.png")

    async def test_timeout(self, monkeypatch, image_client):
        pipeline = FakePipeline(delay=0.3)
        classifier = build_classifier(monkeypatch, image_client, pipeline, timeout=0.05)
        await classifier.initialize()

        with pytest.raises(ClassificationError, match="timed out"):
            await classifier.classify("https://img.example.com/wallet.png")

    def test_from_settings(self):
        settings = Settings(classifier_model="org/custom-model", classifier_top_k=5)

        classifier = TransformersImageClassifier.from_settings(settings)

        assert classifier.model_name == "org/custom-model"
        assert classifier.top_k == 5
        assert classifier.cache_dir == str(settings.cache_dir / "models")
        assert classifier.image_loader.max_bytes == settings.max_image_bytes


class CountingClassifier:
    def __init__(self, fail_first: bool = False):
        self.calls: list[str] = []
        self.fail_first = fail_first

    async def initialize(self) -> None:
        pass

    async def classify(self, image_ref: str):
        self.calls.append(image_ref)
        await asyncio.sleep(0.01)
        if self.fail_first and len(self.calls) == 1:
            raise ClassificationError("flaky", image_ref=image_ref)
        return predictions((image_ref, 0.9))


class BlockingClassifier:
    """Classifies only once released, recording cancellations."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.cancelled: list[str] = []
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def initialize(self) -> None:
        pass

    async def classify(self, image_ref: str):
        self.calls.append(image_ref)
        self.started.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled.append(image_ref)
            raise
        return predictions((image_ref, 0.9))


class TestCachingClassifier:
    """Test per-search memoization of classifications."""

    async def test_repeat_calls_hit_cache(self):
        inner = CountingClassifier()
        caching = CachingClassifier(inner)

        first = await caching.classify("a.jpg")
        second = await caching.classify("a.jpg")
        await caching.classify("b.jpg")

        assert first == second
        assert inner.calls == ["a.jpg", "b.jpg"]

    async def test_concurrent_calls_share_one_classification(self):
        inner = CountingClassifier()
        caching = CachingClassifier(inner)

        results = await asyncio.gather(*(caching.classify("a.jpg") for _ in range(5)))

        assert inner.calls == ["a.jpg"]
        assert all(r == results[0] for r in results)

    async def test_failures_not_cached(self):
        inner = CountingClassifier(fail_first=True)
        caching = CachingClassifier(inner)

        with pytest.raises(ClassificationError):
            await caching.classify("a.jpg")
        result = await caching.classify("a.jpg")

        assert result == predictions(("a.jpg", 0.9))
        assert inner.calls == ["a.jpg", "a.jpg"]

    async def test_clear(self):
        inner = CountingClassifier()
        caching = CachingClassifier(inner)

        await caching.classify("a.jpg")
        caching.clear()
        await caching.classify("a.jpg")

        assert inner.calls == ["a.jpg", "a.jpg"]

    async def test_cancelling_only_waiter_cancels_classification(self):
        inner = BlockingClassifier()
        caching = CachingClassifier(inner)

        waiter = asyncio.ensure_future(caching.classify("a.jpg"))
        await inner.started.wait()
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        await asyncio.sleep(0)

        assert inner.cancelled == ["a.jpg"]
        # A later call starts a fresh classification
        inner.release.set()
        assert await caching.classify("a.jpg") == predictions(("a.jpg", 0.9))

    async def test_remaining_waiter_keeps_shared_classification(self):
        inner = BlockingClassifier()
        caching = CachingClassifier(inner)

        first = asyncio.ensure_future(caching.classify("a.jpg"))
        second = asyncio.ensure_future(caching.classify("a.jpg"))
        await inner.started.wait()
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        inner.release.set()

        assert await second == predictions(("a.jpg", 0.9))
        assert inner.cancelled == []
        assert inner.calls == ["a.jpg"]
