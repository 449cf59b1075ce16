"""Unit tests for the decision-memory CLI (``python -m decision_memory``)."""

from __future__ import annotations

import json
from collections.abc import Generator
from unittest.mock import MagicMock, patch

import pytest

from decision_memory.__main__ import main
from decision_memory.config import Settings
from decision_memory.core.errors import PreconditionError
from decision_memory.core.models import CapabilityTier, TierReport


@pytest.fixture
def degraded_report() -> TierReport:
    return TierReport(
        tier=CapabilityTier.DEGRADED,
        store_available=True,
        embedding_available=False,
        accuracy="40%",
        features=["Exact match search only"],
        reasons=["Embedding runtime unavailable: no module"],
        detected_at="2026-01-01T00:00:00+00:00",
    )


@pytest.fixture
def mock_detector(degraded_report: TierReport) -> Generator[MagicMock, None, None]:
    with patch("decision_memory.services.tier_detection.TierDetector") as cls:
        cls.return_value.detect.return_value = degraded_report
        yield cls


def _exit_code(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return int(exc_info.value.code or 0)


@pytest.mark.unit
class TestInstall:
    def test_persists_tier_and_prints_report(
        self, test_settings: Settings, mock_detector: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert _exit_code(["install"]) == 0

        out = capsys.readouterr().out
        assert "Tier 2 (Degraded Mode)" in out
        assert "Embedding runtime unavailable" in out
        config = json.loads(test_settings.tier_config_path.read_text(encoding="utf-8"))
        assert config["tier"] == 2
        assert config["embedding_available"] is False

    def test_json_output(
        self, test_settings: Settings, mock_detector: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert _exit_code(["install", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["tier"] == 2
        assert data["name"] == "Degraded Mode"

    def test_precondition_failure_exits_1(
        self, test_settings: Settings, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("decision_memory.services.tier_detection.TierDetector") as cls:
            cls.return_value.detect.side_effect = PreconditionError(
                "Python 3.10+ required (found: 3.8.0)", remediation="Install Python 3.10 or newer"
            )
            assert _exit_code(["install"]) == 1

        out = capsys.readouterr().out
        assert "Python 3.10+ required" in out
        assert "Install Python 3.10 or newer" in out
        assert not test_settings.tier_config_path.exists()


@pytest.mark.unit
class TestTier:
    def test_not_installed(self, test_settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
        assert _exit_code(["tier"]) == 1
        assert "Not installed" in capsys.readouterr().out

    def test_after_install(
        self, test_settings: Settings, mock_detector: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _exit_code(["install"])
        capsys.readouterr()

        assert _exit_code(["tier"]) == 0
        out = capsys.readouterr().out
        assert "Tier 2 (Degraded Mode)" in out
        assert "Embeddings: unavailable" in out


@pytest.mark.unit
class TestHookCommand:
    def test_delegates_to_dispatcher(self) -> None:
        with patch("decision_memory.hooks.dispatcher.main", return_value=0) as dispatch_main:
            assert _exit_code(["hook", "pre-compact"]) == 0
        dispatch_main.assert_called_once_with("pre-compact")

    def test_propagates_failure_code(self) -> None:
        with patch("decision_memory.hooks.dispatcher.main", return_value=1):
            assert _exit_code(["hook", "session-start"]) == 1


@pytest.mark.unit
class TestMisc:
    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _exit_code(["--version"]) == 0
        assert capsys.readouterr().out.startswith("decision-memory ")

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _exit_code([]) == 1
        assert "usage:" in capsys.readouterr().out
