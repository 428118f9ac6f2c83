"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from lostfound.core.config import get_settings
from lostfound.core.matching.config import reload_matching_config
from lostfound.core.matching.lexicon import reload_lexicon
from lostfound.core.matching.models import Report, ReportKind


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point settings.json and data directories at a per-test temp dir.

    Config caches are dropped before and after so tests never see each
    other's settings files.
    """
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("LOSTFOUND_DATA_DIR", str(data_dir))

    get_settings.cache_clear()
    reload_matching_config()
    reload_lexicon()

    yield data_dir

    get_settings.cache_clear()
    reload_matching_config()
    reload_lexicon()


@pytest.fixture
def make_report() -> Callable[..., Report]:
    """Factory for reports with sequential ids."""
    counter = itertools.count(1)

    def _make(
        title: str = "",
        description: str = "",
        kind: ReportKind | str = ReportKind.LOST,
        image_url: str | None = None,
        **extra: object,
    ) -> Report:
        report_id = extra.pop("id", None) or next(counter)
        return Report(
            id=report_id,
            title=title,
            description=description,
            kind=kind,
            image_url=image_url,
            **extra,
        )

    return _make


@pytest.fixture
def wallet_pair(make_report: Callable[..., Report]) -> tuple[Report, Report]:
    """Lost wallet and found purse near the library, no images."""
    lost = make_report("Brown Leather Wallet", "lost near library", kind="lost")
    found = make_report("Tan leather purse found", "found near library", kind="found")
    return lost, found
