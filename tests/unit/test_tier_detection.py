"""Unit tests for decision_memory.services.tier_detection.

All probes are injected; no test touches LanceDB or the embedding model.
"""

from __future__ import annotations

import json
from collections import namedtuple
from pathlib import Path

import pytest

from decision_memory.config import Settings
from decision_memory.core.errors import PreconditionError
from decision_memory.core.models import CapabilityTier
from decision_memory.services.tier_detection import (
    TierDetector,
    format_tier_report,
    load_tier_config,
    persisted_tier,
    save_tier_config,
)

DiskUsage = namedtuple("DiskUsage", ["total", "used", "free"])

_PLENTY = DiskUsage(total=10 * 1024**3, used=0, free=10 * 1024**3)


def _ok() -> None:
    return None


def _broken_store() -> None:
    raise ImportError("lancedb native extension missing")


def _broken_embeddings() -> None:
    raise ImportError("No module named 'sentence_transformers'")


def _detector(settings: Settings, **kwargs: object) -> TierDetector:
    params: dict[str, object] = {
        "store_probe": _ok,
        "embedding_probe": _ok,
        "version_info": (3, 12, 1),
        "disk_usage": lambda path: _PLENTY,
    }
    params.update(kwargs)
    return TierDetector(settings, **params)  # type: ignore[arg-type]


@pytest.mark.unit
class TestDetect:
    def test_full_tier_when_all_probes_pass(self, test_settings: Settings) -> None:
        report = _detector(test_settings).detect()

        assert report.tier is CapabilityTier.FULL
        assert report.name == "Full Features"
        assert report.accuracy == "80%"
        assert report.reasons == []
        assert report.store_available and report.embedding_available
        assert report.detected_at

    def test_store_failure_degrades_with_one_reason(self, test_settings: Settings) -> None:
        report = _detector(test_settings, store_probe=_broken_store).detect()

        assert report.tier is CapabilityTier.DEGRADED
        assert len(report.reasons) == 1
        assert report.reasons[0].startswith("Native store driver unavailable")
        assert report.store_available is False
        assert report.embedding_available is True
        assert report.accuracy == "40%"

    def test_embedding_failure_degrades(self, test_settings: Settings) -> None:
        report = _detector(test_settings, embedding_probe=_broken_embeddings).detect()

        assert report.tier is CapabilityTier.DEGRADED
        assert report.reasons == [
            "Embedding runtime unavailable: No module named 'sentence_transformers'"
        ]

    def test_both_failures_record_two_reasons(self, test_settings: Settings) -> None:
        report = _detector(
            test_settings, store_probe=_broken_store, embedding_probe=_broken_embeddings
        ).detect()
        assert report.tier is CapabilityTier.DEGRADED
        assert len(report.reasons) == 2

    def test_old_python_is_fatal(self, test_settings: Settings) -> None:
        probe_calls: list[str] = []

        def store_probe() -> None:
            probe_calls.append("store")

        with pytest.raises(PreconditionError) as exc_info:
            _detector(test_settings, version_info=(3, 8, 10), store_probe=store_probe).detect()

        assert "3.10+" in str(exc_info.value)
        assert "3.8.10" in str(exc_info.value)
        assert exc_info.value.remediation
        assert probe_calls == []

    def test_low_disk_is_fatal(self, test_settings: Settings) -> None:
        low = DiskUsage(total=1024**3, used=1024**3 - 5 * 1024**2, free=5 * 1024**2)
        with pytest.raises(PreconditionError, match="required: 100MB, available: 5MB"):
            _detector(test_settings, disk_usage=lambda path: low).detect()

    def test_disk_check_uses_nearest_existing_parent(self, test_settings: Settings) -> None:
        seen: list[Path] = []

        def usage(path: Path) -> DiskUsage:
            seen.append(path)
            return _PLENTY

        _detector(test_settings, disk_usage=usage).detect()
        assert seen and seen[0].exists()

    def test_unreadable_disk_usage_proceeds(self, test_settings: Settings) -> None:
        def usage(path: Path) -> DiskUsage:
            raise OSError("statvfs failed")

        detector = _detector(test_settings, disk_usage=usage)
        assert detector.check_disk_space() is None
        assert detector.detect().tier is CapabilityTier.FULL


@pytest.mark.unit
class TestTierConfig:
    def test_save_and_load(self, test_settings: Settings) -> None:
        report = _detector(test_settings, embedding_probe=_broken_embeddings).detect()
        path = test_settings.tier_config_path

        assert save_tier_config(report, path) is True
        config = load_tier_config(path)

        assert config is not None
        assert config["tier"] == 2
        assert config["tier_name"] == "Degraded Mode"
        assert config["tier_detected_at"] == report.detected_at
        assert config["store_available"] is True
        assert config["embedding_available"] is False
        assert persisted_tier(path) is CapabilityTier.DEGRADED

    def test_save_merges_existing_keys(self, test_settings: Settings) -> None:
        path = test_settings.tier_config_path
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"user_setting": "keep", "tier": 2}), encoding="utf-8")

        save_tier_config(_detector(test_settings).detect(), path)
        config = json.loads(path.read_text(encoding="utf-8"))

        assert config["user_setting"] == "keep"
        assert config["tier"] == 1

    def test_load_missing_or_invalid(self, tmp_path: Path) -> None:
        assert load_tier_config(tmp_path / "missing.json") is None
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        assert load_tier_config(bad) is None
        no_tier = tmp_path / "no_tier.json"
        no_tier.write_text("{}", encoding="utf-8")
        assert persisted_tier(no_tier) is None


@pytest.mark.unit
class TestFormatTierReport:
    def test_full_report(self, test_settings: Settings) -> None:
        text = format_tier_report(_detector(test_settings).detect())
        assert "Tier 1 (Full Features)" in text
        assert "Vector search (semantic similarity)" in text
        assert "Limitations" not in text

    def test_degraded_report_lists_limitations(self, test_settings: Settings) -> None:
        text = format_tier_report(_detector(test_settings, store_probe=_broken_store).detect())
        assert "Tier 2 (Degraded Mode)" in text
        assert "Native store driver unavailable" in text
        assert "pip install --force-reinstall" in text
