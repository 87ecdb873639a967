"""
Record sinks.

A sink receives one accepted record per call from a dispatcher worker.
Delivery semantics (persistence, retries, write atomicity on shared
streams) are the sink's own responsibility.
"""

import asyncio
import sys
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, TextIO, Type

import structlog

from ..models.log_record import LogRecord
from .exceptions import SinkError

logger = structlog.get_logger(__name__)


class Sink(ABC):
    """Consumer of accepted log records."""

    name = "sink"

    @abstractmethod
    async def deliver(self, record: LogRecord) -> None:
        """Deliver one record. May perform arbitrary I/O."""


class ConsoleSink(Sink):
    """
    Writes the sorted field names of each record to a console stream.

    Field values are not written. Placeholder output, not a production sink.
    """

    name = "console"

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream

    async def deliver(self, record: LogRecord) -> None:
        stream = self.stream or sys.stdout
        stream.write(f"FieldNames: {', '.join(sorted(record))}\n")
        stream.flush()


class StructlogSink(Sink):
    """Emits each record as a structured log event."""

    name = "log"

    def __init__(self, event: str = "Log record received") -> None:
        self.event = event
        self._logger = structlog.get_logger("logjam.records")

    async def deliver(self, record: LogRecord) -> None:
        self._logger.info(self.event, record=record)


class FanoutSink(Sink):
    """
    Delivers each record to several sinks concurrently.

    Every sink is attempted; failures are collected and raised together
    as a SinkError once all of them have finished.
    """

    name = "fanout"

    def __init__(self, sinks: Sequence[Sink]) -> None:
        self.sinks = list(sinks)

    async def deliver(self, record: LogRecord) -> None:
        results = await asyncio.gather(
            *(sink.deliver(record) for sink in self.sinks),
            return_exceptions=True,
        )

        failures = {
            sink.name: f"{type(result).__name__}: {result}"
            for sink, result in zip(self.sinks, results)
            if isinstance(result, BaseException)
        }
        if failures:
            raise SinkError(
                f"{len(failures)} of {len(self.sinks)} sinks failed",
                details={"failures": failures},
            )


SINK_TYPES: Dict[str, Type[Sink]] = {
    ConsoleSink.name: ConsoleSink,
    StructlogSink.name: StructlogSink,
}


def build_sink(names: Sequence[str]) -> Sink:
    """
    Build the configured sink from a list of sink names.

    A single name yields that sink, several names yield a FanoutSink.
    """
    if not names:
        raise ValueError("At least one sink must be configured")

    sinks: List[Sink] = []
    for name in names:
        sink_type = SINK_TYPES.get(name)
        if sink_type is None:
            raise ValueError(f"Unknown sink {name!r}, expected one of: {', '.join(sorted(SINK_TYPES))}")
        sinks.append(sink_type())

    logger.info("Sinks configured", sinks=list(names))

    if len(sinks) == 1:
        return sinks[0]
    return FanoutSink(sinks)
