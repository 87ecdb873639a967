"""
Record dispatcher.

Hands accepted records to a Sink through a bounded asyncio queue served
by a fixed pool of worker tasks. Callers return as soon as a record is
enqueued; they never wait on the Sink.

Features:
- Configurable worker count and queue size (0 = unbounded)
- Backpressure policy when the queue is full: reject, drop or block
- Sink failures and timeouts reported via logs and metrics, never retried
- Drain-on-shutdown with a timeout, abandoned records are counted
"""

import asyncio
import time
from typing import Iterable, List, Optional

import structlog

from ..models.log_record import BackpressurePolicy, LogRecord
from .exceptions import DispatchRejectedError
from .metrics import MetricsCollector
from .sinks import Sink

logger = structlog.get_logger(__name__)


class Dispatcher:
    """
    Bounded worker pool delivering records to a Sink.

    No ordering is guaranteed between records, including records of the
    same batch: workers run concurrently.
    """

    def __init__(
        self,
        sink: Sink,
        workers: int = 4,
        queue_size: int = 10000,
        policy: BackpressurePolicy = BackpressurePolicy.REJECT,
        deliver_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        if workers < 1:
            raise ValueError("Dispatcher needs at least one worker")

        self.sink = sink
        self.workers = workers
        self.queue_size = queue_size
        self.policy = BackpressurePolicy(policy)
        self.deliver_timeout = deliver_timeout
        self.metrics = metrics

        self.delivered = 0
        self.failures = 0
        self.dropped = 0

        self._queue: Optional["asyncio.Queue[LogRecord]"] = None
        self._tasks: List["asyncio.Task[None]"] = []
        self._running = False

        logger.info(
            "Dispatcher initialized",
            sink=sink.name,
            workers=workers,
            queue_size=queue_size,
            policy=self.policy.value,
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Records waiting in the queue (not counting in-flight ones)."""
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        """Create the queue and spawn the worker tasks."""
        if self._running:
            return

        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._tasks = [
            asyncio.create_task(self._worker(index), name=f"logjam-dispatch-{index}")
            for index in range(self.workers)
        ]
        self._running = True

        logger.info("Dispatcher started", workers=self.workers)

    async def stop(self, drain: bool = True, timeout: Optional[float] = 10.0) -> None:
        """
        Stop admitting records, optionally drain the queue, then stop workers.

        Records still queued or in flight when the drain timeout expires
        are abandoned and counted in the shutdown log.
        """
        if not self._running:
            return

        self._running = False
        queue = self._queue

        if drain and queue is not None:
            try:
                await asyncio.wait_for(queue.join(), timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Dispatcher drain timed out",
                    timeout_seconds=timeout,
                    abandoned=queue.qsize(),
                )

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        abandoned = queue.qsize() if queue is not None else 0
        logger.info(
            "Dispatcher stopped",
            delivered=self.delivered,
            failures=self.failures,
            dropped=self.dropped,
            abandoned=abandoned,
        )

    async def dispatch(self, record: LogRecord) -> bool:
        """
        Schedule one record for delivery.

        Returns True when enqueued and False when dropped under the drop
        policy. Raises DispatchRejectedError under the reject policy or
        when the dispatcher is not running.
        """
        return await self.dispatch_batch([record]) == 1

    async def dispatch_batch(self, records: Iterable[LogRecord]) -> int:
        """
        Schedule each record of a batch independently.

        Returns the number of records enqueued. Under the reject policy a
        batch is admitted whole or not at all.
        """
        queue = self._require_queue()
        records = list(records)

        if self.policy is BackpressurePolicy.BLOCK:
            for record in records:
                await queue.put(record)
            self._update_depth()
            return len(records)

        if self.policy is BackpressurePolicy.REJECT:
            free = self._free_slots(queue)
            if free is not None and free < len(records):
                logger.warning(
                    "Dispatch rejected, queue full",
                    records=len(records),
                    free_slots=free,
                )
                raise DispatchRejectedError()

        enqueued = 0
        for record in records:
            try:
                queue.put_nowait(record)
            except asyncio.QueueFull:
                break
            enqueued += 1

        dropped = len(records) - enqueued
        if dropped:
            self.dropped += dropped
            if self.metrics:
                self.metrics.record_dropped(dropped)
            logger.warning("Dispatch queue full, records dropped", dropped=dropped)

        self._update_depth()
        return enqueued

    def _require_queue(self) -> "asyncio.Queue[LogRecord]":
        if not self._running or self._queue is None:
            raise DispatchRejectedError("Dispatcher is not running", retry_after=None)
        return self._queue

    def _free_slots(self, queue: "asyncio.Queue[LogRecord]") -> Optional[int]:
        if queue.maxsize <= 0:
            return None
        return queue.maxsize - queue.qsize()

    def _update_depth(self) -> None:
        if self.metrics and self._queue is not None:
            self.metrics.update_queue_depth(self._queue.qsize())

    async def _worker(self, index: int) -> None:
        """Worker loop: take one record at a time and deliver it."""
        assert self._queue is not None
        queue = self._queue

        while True:
            record = await queue.get()
            try:
                self._update_depth()
                await self._deliver(record)
            finally:
                queue.task_done()

    async def _deliver(self, record: LogRecord) -> None:
        start = time.perf_counter()
        try:
            if self.deliver_timeout is not None:
                await asyncio.wait_for(self.sink.deliver(record), self.deliver_timeout)
            else:
                await self.sink.deliver(record)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            if self.metrics:
                self.metrics.record_sink_failure(self.sink.name, type(e).__name__)
            logger.error(
                "Sink delivery failed",
                sink=self.sink.name,
                error=str(e),
                error_type=type(e).__name__,
                fields=len(record),
            )
            return

        self.delivered += 1
        if self.metrics:
            self.metrics.record_delivery(self.sink.name, time.perf_counter() - start)
