"""Timeout-bounded parallel warmup of the decision store and embedding model.

Both subsystems are dominated by one-time file and model loading, so they run
concurrently and the worst case is bounded by the slower of the two.  The pair
is raced against a hard deadline; a lost race yields a timed-out result and
the session continues degraded rather than blocking.

Each blocking initializer runs on a daemon thread bridged to an asyncio
future.  Nothing is cancelled at the deadline: a late finisher's result is
simply never read, and daemon threads do not hold the hook process open.

The outcome is exported through the session environment record so a later
hook process in the same session can see the store is already warm.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable

from decision_memory.config import Settings
from decision_memory.core.models import SubsystemResult, WarmupResult
from decision_memory.core.session_cache import SessionCache
from decision_memory.ports.store import DecisionStoreProtocol, EmbedderProtocol

logger = logging.getLogger(__name__)

ENV_WARM_STATUS = "DECISION_MEMORY_WARM_STATUS"
ENV_WARM_TIME = "DECISION_MEMORY_WARM_TIME"
ENV_WARM_STORE_MS = "DECISION_MEMORY_WARM_STORE_MS"
ENV_WARM_EMBEDDING_MS = "DECISION_MEMORY_WARM_EMBEDDING_MS"
ENV_SESSION_START = "DECISION_MEMORY_SESSION_START"

STORE = "store"
EMBEDDING = "embedding"

DISABLED_FOR_TIER = "disabled for tier"


def _run_in_daemon_thread(
    loop: asyncio.AbstractEventLoop,
    fn: Callable[[], SubsystemResult],
    name: str,
) -> asyncio.Future[SubsystemResult]:
    """Run *fn* on a daemon thread and expose its result as a loop future.

    *fn* must not raise.
    """
    future: asyncio.Future[SubsystemResult] = loop.create_future()

    def _deliver(result: SubsystemResult) -> None:
        if not future.done():
            future.set_result(result)

    def _runner() -> None:
        result = fn()
        try:
            loop.call_soon_threadsafe(_deliver, result)
        except RuntimeError:
            # Loop already closed: the deadline passed, result is discarded
            logger.debug(f"Discarding late {name} warmup result")

    threading.Thread(target=_runner, name=f"warmup-{name}", daemon=True).start()
    return future


def _timed(name: str, fn: Callable[[], bool | None]) -> SubsystemResult:
    start = time.perf_counter()
    try:
        ok = fn()
    except Exception as e:
        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.error(f"{name} warmup failed: {e}")
        return SubsystemResult(name=name, success=False, latency_ms=latency_ms, error=str(e))

    latency_ms = int((time.perf_counter() - start) * 1000)
    if ok is False:
        logger.warning(f"{name} warmup returned no result")
        return SubsystemResult(
            name=name, success=False, latency_ms=latency_ms, error=f"{name} returned no result"
        )
    logger.info(f"{name} warmed in {latency_ms}ms")
    return SubsystemResult(name=name, success=True, latency_ms=latency_ms)


class WarmupOrchestrator:
    """Runs the once-per-session warmup.

    A subsystem passed as ``None`` is disabled for the installed tier and is
    reported as a successful no-op.
    """

    def __init__(
        self,
        settings: Settings,
        cache: SessionCache,
        store: DecisionStoreProtocol | None,
        embedder: EmbedderProtocol | None,
        record_path: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._cache = cache
        self._store = store
        self._embedder = embedder
        self._record_path = record_path or cache.record_path
        self._clock = clock

    # -- prior state -----------------------------------------------------

    def is_warm(self) -> bool:
        """Whether a successful warmup for this session is recorded and fresh."""
        if self._cache.read_env(ENV_WARM_STATUS) != "ready":
            return False

        raw_start = self._cache.read_env(ENV_SESSION_START)
        try:
            started_ms = int(raw_start) if raw_start else None
        except ValueError:
            started_ms = None
        if started_ms is None:
            return False

        age_ms = self._clock() * 1000 - started_ms
        return 0 <= age_ms < self._settings.warm_freshness_minutes * 60_000

    # -- subsystems ------------------------------------------------------

    def _warm_store(self) -> SubsystemResult:
        store = self._store
        if store is None:
            return SubsystemResult(STORE, success=True, latency_ms=0, error=DISABLED_FOR_TIER)
        return _timed(STORE, store.connect)

    def _warm_embedding(self) -> SubsystemResult:
        embedder = self._embedder
        if embedder is None:
            return SubsystemResult(EMBEDDING, success=True, latency_ms=0, error=DISABLED_FOR_TIER)
        return _timed(EMBEDDING, embedder.warm)

    # -- orchestration ---------------------------------------------------

    async def warm_up(self, deadline_ms: int | None = None) -> WarmupResult:
        """Warm both subsystems concurrently, bounded by *deadline_ms*."""
        if self.is_warm():
            logger.info("Session already warm, skipping re-initialization")
            return WarmupResult(success=True, total_latency_ms=0, skipped=True)

        if deadline_ms is None:
            deadline_ms = self._settings.warmup_deadline_ms
        start = time.perf_counter()
        loop = asyncio.get_running_loop()

        both = asyncio.gather(
            _run_in_daemon_thread(loop, self._warm_store, STORE),
            _run_in_daemon_thread(loop, self._warm_embedding, EMBEDDING),
        )
        done, _pending = await asyncio.wait({both}, timeout=deadline_ms / 1000)
        total_ms = int((time.perf_counter() - start) * 1000)

        if both not in done:
            logger.warning(f"Warmup timed out after {deadline_ms}ms")
            result = WarmupResult(
                success=False,
                total_latency_ms=total_ms,
                timed_out=True,
                error=f"Warmup timed out after {deadline_ms}ms",
            )
        else:
            store_result, embedding_result = both.result()
            subsystems = {STORE: store_result, EMBEDDING: embedding_result}
            failures = [r.error for r in subsystems.values() if not r.success]
            result = WarmupResult(
                success=not failures,
                total_latency_ms=total_ms,
                subsystems=subsystems,
                error=failures[0] if failures else None,
            )

        self._persist(result)
        return result

    def run_warmup(self, deadline_ms: int | None = None) -> WarmupResult:
        """Synchronous entry point for hook processes."""
        return asyncio.run(self.warm_up(deadline_ms))

    def _persist(self, result: WarmupResult) -> bool:
        values = {
            ENV_WARM_STATUS: result.status,
            ENV_WARM_TIME: str(result.total_latency_ms),
            ENV_SESSION_START: str(int(self._clock() * 1000)),
            ENV_WARM_STORE_MS: "",
            ENV_WARM_EMBEDDING_MS: "",
        }
        latencies = result.latencies_ms
        if STORE in latencies:
            values[ENV_WARM_STORE_MS] = str(latencies[STORE])
        if EMBEDDING in latencies:
            values[ENV_WARM_EMBEDDING_MS] = str(latencies[EMBEDDING])

        ok = self._cache.export_env(values, self._record_path)
        if not ok:
            logger.warning("Warm status kept in-process only; env record not updated")
        return ok
