"""Shared pytest fixtures for pagepulse tests."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from pagepulse.config import BudgetEntry, MonitorConfig
from pagepulse.context import MonitorContext
from pagepulse.host import InMemoryHost
from pagepulse.models import ConnectionInfo, Metric, Viewport

T0 = 1_700_000_000_000.0


@pytest.fixture(autouse=True)
def _reset_pagepulse_logger():
    """Undo setup_logging() so caplog sees pagepulse records in every test."""
    yield
    root = logging.getLogger("pagepulse")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)


class FakeClock:
    """Epoch-millisecond clock advanced by hand."""

    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def host() -> InMemoryHost:
    """A desktop page on a fast connection."""
    return InMemoryHost(
        url="https://shop.example/products/42",
        viewport=Viewport(width=1280, height=800, pixel_ratio=2.0),
        connection=ConnectionInfo(effective_type="4g", downlink_mbps=10.0, rtt_ms=50.0),
    )


@pytest.fixture
def context(host: InMemoryHost, clock: FakeClock) -> MonitorContext:
    return MonitorContext(
        host=host,
        build_version="2024.06.1",
        session_id="session-1",
        user_id="user-7",
        clock=clock,
    )


@pytest.fixture
def budgets() -> dict[str, BudgetEntry]:
    return {
        "lcp": BudgetEntry(threshold=2500, unit="ms"),
        "cls": BudgetEntry(threshold=0.1, unit="score"),
        "bundle_size": BudgetEntry(threshold=250, unit="kb"),
    }


@pytest.fixture
def config(budgets: dict[str, BudgetEntry]) -> MonitorConfig:
    return MonitorConfig(build_version="2024.06.1", budgets=budgets)


@pytest.fixture
def make_metric(clock: FakeClock):
    """Factory for metrics stamped with the fake clock."""

    def _make(name: str, value: float, **attributes: object) -> Metric:
        return Metric.create(
            name, value, source="test", timestamp=clock(), attributes=attributes
        )

    return _make


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "pagepulse.toml"
    path.write_text(
        """
[pagepulse]
build_version = "2024.06.1"

[pagepulse.budgets]
lcp = { threshold = 2500, unit = "ms" }
cls = { threshold = 0.1, unit = "score" }

[pagepulse.buffer]
capacity = 50
flush_interval_ms = 5000
""",
        encoding="utf-8",
    )
    return path
