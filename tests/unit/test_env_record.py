"""Unit tests for decision_memory.core.env_record."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from filelock import Timeout as FileLockTimeout

from decision_memory.core.env_record import (
    format_export_line,
    read_env_record,
    write_env_var,
    write_env_vars,
)
from decision_memory.core.errors import RecordWriteError


def _lines_for(path: Path, name: str) -> list[str]:
    return [
        line for line in path.read_text(encoding="utf-8").splitlines()
        if line.startswith(f"export {name}=")
    ]


@pytest.mark.unit
class TestFormatExportLine:
    def test_plain_value(self) -> None:
        assert format_export_line("FOO", "bar") == 'export FOO="bar"'

    def test_escapes_quotes_and_newlines(self) -> None:
        line = format_export_line("FOO", 'a "b"\nc')
        assert line == 'export FOO="a \\"b\\"\\nc"'

    def test_escapes_shell_expansion(self) -> None:
        line = format_export_line("FOO", "$HOME `id`")
        assert line == 'export FOO="\\$HOME \\`id\\`"'


@pytest.mark.unit
class TestWriteEnvVar:
    def test_creates_record(self, record_path: Path) -> None:
        write_env_var(record_path, "FOO", "bar")
        assert read_env_record(record_path) == {"FOO": "bar"}

    def test_replaces_existing_line(self, record_path: Path) -> None:
        write_env_var(record_path, "FOO", "first")
        write_env_var(record_path, "FOO", "second")

        assert _lines_for(record_path, "FOO") == ['export FOO="second"']
        assert read_env_record(record_path)["FOO"] == "second"

    def test_appends_new_keys_and_keeps_others(self, record_path: Path) -> None:
        record_path.write_text("# session\nexport PATH_HINT=\"/usr/bin\"\n", encoding="utf-8")
        write_env_var(record_path, "FOO", "bar")

        text = record_path.read_text(encoding="utf-8")
        assert "# session" in text
        assert read_env_record(record_path) == {"PATH_HINT": "/usr/bin", "FOO": "bar"}

    def test_drops_duplicate_lines_for_replaced_key(self, record_path: Path) -> None:
        record_path.write_text('export FOO="a"\nexport FOO="b"\n', encoding="utf-8")
        write_env_var(record_path, "FOO", "c")
        assert _lines_for(record_path, "FOO") == ['export FOO="c"']

    def test_value_round_trip_with_special_characters(self, record_path: Path) -> None:
        value = 'quote " backslash \\ newline \n dollar $HOME tick `id` end'
        write_env_var(record_path, "FOO", value)
        assert read_env_record(record_path)["FOO"] == value

    def test_invalid_name_raises(self, record_path: Path) -> None:
        with pytest.raises(RecordWriteError):
            write_env_var(record_path, "NOT-VALID", "x")

    def test_lock_timeout_raises_record_write_error(self, record_path: Path) -> None:
        with patch("decision_memory.core.env_record.FileLock") as mock_lock:
            mock_lock.return_value.__enter__.side_effect = FileLockTimeout(str(record_path))
            with pytest.raises(RecordWriteError, match="lock timeout"):
                write_env_var(record_path, "FOO", "bar")

    def test_unwritable_location_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        with pytest.raises(RecordWriteError):
            write_env_var(blocker / "session.env", "FOO", "bar")


@pytest.mark.unit
class TestWriteEnvVars:
    def test_multiple_values_single_pass(self, record_path: Path) -> None:
        write_env_vars(record_path, {"A": "1", "B": "2"})
        write_env_vars(record_path, {"B": "3", "C": "4"})
        assert read_env_record(record_path) == {"A": "1", "B": "3", "C": "4"}
        assert len(_lines_for(record_path, "B")) == 1


@pytest.mark.unit
class TestReadEnvRecord:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert read_env_record(tmp_path / "missing.env") == {}

    def test_ignores_unparseable_lines(self, record_path: Path) -> None:
        record_path.write_text(
            "garbage line\nexport OK=\"yes\"\nexport 9BAD=1\nexport SINGLE='raw \\n'\n",
            encoding="utf-8",
        )
        assert read_env_record(record_path) == {"OK": "yes", "SINGLE": "raw \\n"}
