"""Resource timing source: one metric per fetched resource."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .base import MetricSource


class ResourceTimingSource(MetricSource):
    name = "resource"

    def _attach(self) -> None:
        self._observe("resource", self._on_entry)

    def _on_entry(self, entry: Mapping[str, Any]) -> None:
        duration = float(entry.get("duration", 0.0))
        self._emit(
            "resource",
            duration,
            attributes={
                "url": entry.get("name", ""),
                "initiator_type": entry.get("initiatorType", "other"),
                "transfer_size": int(entry.get("transferSize", 0) or 0),
            },
        )
