"""Batch runner: execute N independent pipeline runs and aggregate them.

Runs execute sequentially by default, or on up to ``concurrency_limit``
asyncio workers. Completed runs are handed to a single aggregator task over
a queue; only that task touches the batch totals. stop() is cooperative and
is checked only before a run starts, so every started run finishes with a
RunResult.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from ..config import BatchConfig
from ..errors import RunAbortedError
from ..models import BatchProgress, BatchResult, ErrorKind, RunResult, SessionRecord
from .identifiers import generate_batch_id, generate_run_id
from .orchestrator import PIPELINE_STAGE, PipelineOrchestrator
from .session_log import SessionLog

logger = logging.getLogger(__name__)

RunCallback = Callable[[RunResult, BatchProgress], None]


class BatchRunner:
    """Runs a batch of pipeline executions and folds them into a BatchResult.

    Example:
        >>> runner = BatchRunner(orchestrator, BatchConfig(concurrency_limit=2))
        >>> result = await runner.run(10)
        >>> print(f"{result.passed_count}/{len(result.runs)} passed")
    """

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        config: BatchConfig | None = None,
        on_run_complete: RunCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the batch runner.

        Args:
            orchestrator: Orchestrator executing each run
            config: Batch settings (defaults to the orchestrator's config)
            on_run_complete: Called by the aggregator after each finished run
            sleep: Awaitable used for the inter-run delay
        """
        self.orchestrator = orchestrator
        self.config = config or orchestrator.config.batch
        self.on_run_complete = on_run_complete
        self._sleep = sleep
        self._stop_requested = False

    def stop(self) -> None:
        """Request the batch to stop before the next run starts."""
        if not self._stop_requested:
            logger.info("Stop requested; finishing in-flight runs")
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    async def run(self, n: int | None = None, batch_id: str | None = None) -> BatchResult:
        """Execute up to n runs.

        Never raises because of a run: failing runs become failed RunResults.

        Args:
            n: Number of runs (defaults to config.target_runs)
            batch_id: Prefix for run IDs (generated if omitted)

        Returns:
            BatchResult with one RunResult per started run, in run order
        """
        total = self.config.target_runs if n is None else n
        batch_id = batch_id or generate_batch_id()
        self._stop_requested = False
        started = time.perf_counter()
        workers = max(1, min(self.config.concurrency_limit, total)) if total > 0 else 0
        logger.info(f"Batch {batch_id}: {total} runs, concurrency {max(workers, 1)}")

        queue: asyncio.Queue[tuple[int, RunResult, SessionRecord, asyncio.Future[None]] | None]
        queue = asyncio.Queue()
        completed: dict[int, tuple[RunResult, SessionRecord]] = {}
        next_index = 0
        claimed = 0

        def has_more() -> bool:
            return not self._stop_requested and next_index < total

        def claim() -> int | None:
            nonlocal next_index, claimed
            if not has_more():
                return None
            index = next_index
            next_index += 1
            claimed += 1
            return index

        async def worker() -> None:
            first = True
            while has_more():
                if not first and self.config.inter_run_delay > 0:
                    await self._sleep(self.config.inter_run_delay)
                first = False
                index = claim()
                if index is None:
                    return
                result, record = await self._execute_one(batch_id, index)
                done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
                await queue.put((index, result, record, done))
                await done

        async def aggregate() -> None:
            while True:
                item = await queue.get()
                if item is None:
                    return
                index, result, record, done = item
                completed[index] = (result, record)
                passed = sum(1 for r, _ in completed.values() if r.passed)
                progress = BatchProgress(
                    total=total,
                    completed=len(completed),
                    passed=passed,
                    failed=len(completed) - passed,
                    in_progress=claimed - len(completed),
                )
                status = "passed" if result.passed else "failed"
                logger.info(f"Run {index + 1}/{total} {status}: {result.run_id}")
                self._notify(result, progress)
                done.set_result(None)

        aggregator = asyncio.create_task(aggregate())
        try:
            await asyncio.gather(*(worker() for _ in range(workers)))
        finally:
            await queue.put(None)
            await aggregator

        ordered = [completed[index] for index in sorted(completed)]
        runs = tuple(result for result, _ in ordered)
        passed_count = sum(1 for run in runs if run.passed)
        result = BatchResult(
            runs=runs,
            passed_count=passed_count,
            failed_count=len(runs) - passed_count,
            total_duration_ms=int((time.perf_counter() - started) * 1000),
            total_cost=sum(run.estimated_cost for run in runs),
            sessions=tuple(record for _, record in ordered),
            stopped=self._stop_requested and len(runs) < total,
        )
        logger.info(
            f"Batch {batch_id}: {result.passed_count} passed, {result.failed_count} failed "
            f"in {result.total_duration_ms} ms"
        )
        return result

    async def _execute_one(self, batch_id: str, index: int) -> tuple[RunResult, SessionRecord]:
        """Run one pipeline execution, converting any failure into a failed RunResult."""
        run_id = generate_run_id(batch_id, index)
        session = SessionLog(run_id=run_id, sink=self.orchestrator.event_sink)
        started = time.perf_counter()
        try:
            result = await self.orchestrator.execute_run(run_id=run_id, session=session)
        except RunAbortedError as e:
            result = RunResult.failed(
                run_id,
                error=str(e.cause),
                duration_ms=int((time.perf_counter() - started) * 1000),
                stage_traces=e.stage_traces,
                estimated_cost=e.estimated_cost,
                session_id=session.session_id,
            )
        except Exception as e:
            logger.error(f"Run {run_id}: unexpected error: {e}")
            if not session.started:
                session.start_session(run_id)
            if session.active:
                session.record_error(
                    PIPELINE_STAGE, ErrorKind.FATAL, str(e), {"exception": type(e).__name__}
                )
                session.end_session(passed=False)
            result = RunResult.failed(
                run_id,
                error=str(e),
                duration_ms=int((time.perf_counter() - started) * 1000),
                session_id=session.session_id,
            )
        return result, session.snapshot()

    def _notify(self, result: RunResult, progress: BatchProgress) -> None:
        if self.on_run_complete is None:
            return
        try:
            self.on_run_complete(result, progress)
        except Exception:
            logger.warning("on_run_complete callback failed", exc_info=True)
