"""
Ingestion pipeline.

Orchestrates, per request:
1. Decoding (body routes) or query extraction (PUT /log)
2. Normalization into LogRecords
3. Dispatch to the sink without waiting for delivery

Authentication happens before the pipeline, in the route dependency.
"""

from dataclasses import dataclass
from typing import Any, AsyncIterable, Iterable, Optional, Tuple

import structlog

from ..models.log_record import ExpectedShape
from .decoder import BodyDecoder
from .dispatcher import Dispatcher
from .metrics import MetricsCollector
from .normalizer import RecordNormalizer

logger = structlog.get_logger(__name__)


@dataclass
class IngestResult:
    """Result of ingesting one request."""
    records_received: int
    records_dispatched: int


class IngestPipeline:
    """
    Decode, normalize and dispatch for each supported request shape.

    multi_strict selects whether POST /multi gets the same unknown-field
    and trailing-data checks as POST /log.
    """

    def __init__(
        self,
        decoder: BodyDecoder,
        normalizer: RecordNormalizer,
        dispatcher: Dispatcher,
        multi_strict: bool = True,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.decoder = decoder
        self.normalizer = normalizer
        self.dispatcher = dispatcher
        self.multi_strict = multi_strict
        self.metrics = metrics
        logger.info("Ingest pipeline initialized", multi_strict=multi_strict)

    async def ingest_query(self, items: Iterable[Tuple[str, Any]]) -> IngestResult:
        """Ingest one record built from query parameters."""
        record = self.normalizer.from_query(items)
        dispatched = int(await self.dispatcher.dispatch(record))
        return self._accepted("/log", 1, dispatched)

    async def ingest_single(
        self,
        stream: AsyncIterable[bytes],
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> IngestResult:
        """Ingest one record from a JSON object body."""
        obj = await self.decoder.decode(
            stream,
            content_type,
            shape=ExpectedShape.OBJECT,
            strict=True,
            content_length=content_length,
        )
        record = self.normalizer.from_object(obj)
        dispatched = int(await self.dispatcher.dispatch(record))
        return self._accepted("/log", 1, dispatched)

    async def ingest_batch(
        self,
        stream: AsyncIterable[bytes],
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> IngestResult:
        """Ingest a batch of records from a JSON array body."""
        items = await self.decoder.decode(
            stream,
            content_type,
            shape=ExpectedShape.ARRAY,
            strict=self.multi_strict,
            content_length=content_length,
        )
        batch = self.normalizer.from_batch(items)
        dispatched = await self.dispatcher.dispatch_batch(batch)
        return self._accepted("/multi", len(batch), dispatched, batch=True)

    def _accepted(self, endpoint: str, received: int, dispatched: int, batch: bool = False) -> IngestResult:
        if self.metrics:
            self.metrics.record_accepted(endpoint, dispatched, batch=batch)

        logger.debug(
            "Records accepted",
            endpoint=endpoint,
            records_received=received,
            records_dispatched=dispatched,
        )
        return IngestResult(records_received=received, records_dispatched=dispatched)
