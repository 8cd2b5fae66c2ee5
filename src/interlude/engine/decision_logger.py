"""
Decision Logger

Fire-and-forget delivery of DecisionExplanation records to an append-only
sink. log() never raises and never waits on the sink: records go onto a
bounded asyncio queue drained by a background task owned by the engine.
Shutdown either flushes the queue or drops what is pending, and reports
how many were dropped.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from interlude.contracts.decision import DecisionExplanation
from interlude.contracts.ports import ExplanationSink

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[Exception, Optional[DecisionExplanation]], Any]


def _log_error(error: Exception, explanation: Optional[DecisionExplanation]) -> None:
    target = explanation.explanation_id if explanation else "-"
    logger.error(f"Decision log write failed ({target}): {error}")


class DecisionLogger:
    """Background writer for decision explanations."""

    def __init__(
        self,
        sink: ExplanationSink,
        max_pending: int = 1000,
        error_reporter: Optional[ErrorReporter] = None,
    ):
        """Initialize the logger.

        Args:
            sink: Append-only destination
            max_pending: Queue bound; records beyond it are dropped
            error_reporter: Called with (error, explanation) on any failure
        """
        self.sink = sink
        self.max_pending = max_pending
        self.error_reporter = error_reporter or _log_error

        self._queue: asyncio.Queue | None = None
        self._task: asyncio.Task | None = None

        self.logged = 0
        self.failed = 0
        self.dropped = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        """Start the background writer on the running loop."""
        if self.is_running:
            return
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.max_pending)
        self._task = asyncio.create_task(self._drain())

    def log(self, explanation: DecisionExplanation) -> None:
        """Queue an explanation for writing. Never raises."""
        try:
            if not self.is_running:
                try:
                    asyncio.get_running_loop()
                except RuntimeError:
                    # No event loop (sync caller): write inline
                    self._write(explanation)
                    return
                if self._queue is None:
                    self._queue = asyncio.Queue(maxsize=self.max_pending)
                self._task = asyncio.create_task(self._drain())

            self._queue.put_nowait(explanation)
        except asyncio.QueueFull:
            self.dropped += 1
            self._report(RuntimeError("decision log queue full"), explanation)
        except Exception as e:
            self.failed += 1
            self._report(e, explanation)

    def _write(self, explanation: DecisionExplanation) -> None:
        try:
            self.sink.append(explanation)
            self.logged += 1
        except Exception as e:
            self.failed += 1
            self._report(e, explanation)

    async def _drain(self) -> None:
        """Background loop writing queued explanations."""
        queue = self._queue
        if queue is None:
            return
        while True:
            explanation = await queue.get()
            try:
                await asyncio.to_thread(self._write, explanation)
            finally:
                queue.task_done()

    def _report(self, error: Exception, explanation: Optional[DecisionExplanation]) -> None:
        try:
            self.error_reporter(error, explanation)
        except Exception as e:
            logger.error(f"Decision log error reporter failed: {e}")

    async def stop(self, flush: bool = True) -> int:
        """Stop the background writer.

        Args:
            flush: Write everything pending first; otherwise drop it

        Returns:
            Number of explanations dropped
        """
        dropped = 0
        if self._queue is not None:
            if flush and self.is_running:
                await self._queue.join()
            else:
                while not self._queue.empty():
                    self._queue.get_nowait()
                    self._queue.task_done()
                    dropped += 1

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if dropped:
            self.dropped += dropped
            logger.warning(f"Dropped {dropped} pending decision log entries on shutdown")
        return dropped

    def get_stats(self) -> dict:
        return {
            "running": self.is_running,
            "pending": self.pending,
            "logged": self.logged,
            "failed": self.failed,
            "dropped": self.dropped,
        }
