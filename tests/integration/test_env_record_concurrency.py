"""Integration tests for concurrent writers of the session env record.

Hook processes of one session are normally serialized by the host; these
tests check that the file lock keeps the record consistent when they are not.
Uses the 'spawn' start method so workers are fresh interpreters like real
hook processes.
"""

from __future__ import annotations

import multiprocessing
from pathlib import Path

import pytest

from decision_memory.core.env_record import read_env_record, write_env_var

pytestmark = pytest.mark.integration

_mp_context = multiprocessing.get_context("spawn")


def _writer_worker(record_path: str, worker_id: int, rounds: int) -> None:
    for i in range(rounds):
        write_env_var(record_path, f"WORKER_{worker_id}", str(i))
        write_env_var(record_path, "SHARED_KEY", f"{worker_id}:{i}")


class TestConcurrentWriters:
    def test_one_line_per_key_and_no_lost_keys(self, tmp_path: Path) -> None:
        record = tmp_path / "session.env"
        workers = 4
        rounds = 10

        processes = [
            _mp_context.Process(target=_writer_worker, args=(str(record), w, rounds))
            for w in range(workers)
        ]
        for p in processes:
            p.start()
        for p in processes:
            p.join(timeout=60)
            assert p.exitcode == 0

        values = read_env_record(record)
        for w in range(workers):
            assert values[f"WORKER_{w}"] == str(rounds - 1)

        # Last writer wins for the shared key
        worker, _, last = values["SHARED_KEY"].partition(":")
        assert 0 <= int(worker) < workers
        assert last == str(rounds - 1)

        lines = record.read_text(encoding="utf-8").splitlines()
        names = [line.split("=", 1)[0] for line in lines]
        assert len(names) == len(set(names)) == workers + 1
