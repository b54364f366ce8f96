"""Tests for metric records, ratings and configuration models."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest
from pydantic import ValidationError

from pagepulse.config import BudgetEntry, MonitorConfig, PreloadConfig, build_config, load_config
from pagepulse.enrichment import enrich
from pagepulse.errors import ConfigurationError
from pagepulse.models import (
    EnrichedMetric,
    Metric,
    MetricName,
    PerformanceEvent,
    PerformanceEventType,
    Rating,
    rate,
)

# =============================================================================
# Metric
# =============================================================================


class TestMetric:
    def test_create_normalises_name_and_rates(self) -> None:
        metric = Metric.create("LCP", 3100, source="web-vitals", timestamp=1.0)
        assert metric.name == "lcp"
        assert metric.value == 3100.0
        assert metric.rating == Rating.NEEDS_IMPROVEMENT

    def test_custom_metric_has_no_rating(self) -> None:
        metric = Metric.create("bundle_size", 312, timestamp=1.0)
        assert metric.rating is None

    def test_metric_is_immutable(self) -> None:
        metric = Metric.create("lcp", 1000, timestamp=1.0, attributes={"element": "img"})
        with pytest.raises(FrozenInstanceError):
            metric.value = 5.0  # type: ignore[misc]
        with pytest.raises(TypeError):
            metric.attributes["element"] = "div"  # type: ignore[index]

    def test_attributes_are_copied(self) -> None:
        attrs = {"url": "/app.js"}
        metric = Metric.create("resource", 12, timestamp=1.0, attributes=attrs)
        attrs["url"] = "/other.js"
        assert metric.attributes["url"] == "/app.js"

    def test_to_dict(self) -> None:
        metric = Metric.create("cls", 0.3, source="web-vitals", timestamp=5.0)
        assert metric.to_dict() == {
            "name": "cls",
            "value": 0.3,
            "timestamp": 5.0,
            "rating": "poor",
            "source": "web-vitals",
            "attributes": {},
        }


class TestRating:
    @pytest.mark.parametrize(
        ("name", "value", "expected"),
        [
            (MetricName.LCP, 2500, Rating.GOOD),
            (MetricName.LCP, 2501, Rating.NEEDS_IMPROVEMENT),
            (MetricName.LCP, 4001, Rating.POOR),
            (MetricName.INP, 150, Rating.GOOD),
            (MetricName.FID, 300, Rating.NEEDS_IMPROVEMENT),
            (MetricName.CLS, 0.26, Rating.POOR),
            (MetricName.FCP, 1000, Rating.GOOD),
            (MetricName.TTFB, 2000, Rating.POOR),
        ],
    )
    def test_vendor_thresholds(self, name: str, value: float, expected: Rating) -> None:
        assert rate(name, value) == expected

    def test_unknown_metric(self) -> None:
        assert rate("funnel:checkout", 10) is None


class TestPerformanceEvent:
    def test_from_metric(self, context, make_metric) -> None:
        enriched = enrich(make_metric("lcp", 2000), context)
        event = PerformanceEvent.from_metric(enriched)

        assert event.type == PerformanceEventType.METRIC
        assert event.url == "https://shop.example/products/42"
        assert event.to_dict()["sessionId"] == "session-1"
        assert event.to_dict()["userId"] == "user-7"
        assert event.data["name"] == "lcp"

    def test_enriched_exposes_metric_fields(self, context, make_metric) -> None:
        enriched = enrich(make_metric("inp", 320), context)
        assert isinstance(enriched, EnrichedMetric)
        assert (enriched.name, enriched.value, enriched.rating) == (
            "inp",
            320.0,
            Rating.NEEDS_IMPROVEMENT,
        )


# =============================================================================
# Configuration
# =============================================================================


class TestConfig:
    def test_defaults(self) -> None:
        config = MonitorConfig()
        assert config.budgets == {}
        assert config.buffer.capacity == 100
        assert config.buffer.flush_interval_ms == 10_000
        assert config.preload.caps == {"fast": 3, "moderate": 1, "slow": 0}
        assert config.escalation.burst_threshold == 10

    def test_budget_names_are_lowercased(self) -> None:
        config = build_config({"budgets": {"LCP": {"threshold": 2500}}})
        assert "lcp" in config.budgets
        assert config.budgets["lcp"].unit == "ms"

    def test_duplicate_budget_after_normalisation(self) -> None:
        with pytest.raises(ConfigurationError):
            build_config({"budgets": {"LCP": {"threshold": 1}, "lcp": {"threshold": 2}}})

    @pytest.mark.parametrize("threshold", [0, -5, float("inf")])
    def test_non_positive_threshold_rejected(self, threshold: float) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            build_config({"budgets": {"lcp": {"threshold": threshold}}})
        assert exc_info.value.detail["errors"]

    def test_unknown_unit_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            build_config({"budgets": {"lcp": {"threshold": 10, "unit": "parsecs"}}})

    def test_severity_ordering_enforced(self) -> None:
        with pytest.raises(ConfigurationError):
            build_config({"severity": {"high_ratio": 1.2, "medium_ratio": 1.8}})

    def test_partial_caps_merge_with_defaults(self) -> None:
        config = PreloadConfig(caps={"fast": 5})
        assert config.cap_for("fast") == 5
        assert config.cap_for("moderate") == 1
        assert config.cap_for("slow") == 0

    def test_config_is_frozen(self) -> None:
        entry = BudgetEntry(threshold=100)
        with pytest.raises(ValidationError):
            entry.threshold = 5  # type: ignore[misc]

    def test_load_config(self, config_file: Path) -> None:
        config = load_config(config_file)
        assert config.build_version == "2024.06.1"
        assert config.budgets["lcp"].threshold == 2500
        assert config.budgets["cls"].unit == "score"
        assert config.buffer.capacity == 50

    def test_load_config_without_table_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.toml"
        path.write_text('[tool.other]\nkey = "value"\n', encoding="utf-8")
        assert load_config(path) == MonitorConfig()

    def test_load_config_malformed_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("[pagepulse\nbuild_version = ", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_load_config_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "absent.toml")
