"""
Record normalization.

Turns query parameters or decoded JSON into canonical LogRecords.
"""

from typing import Any, Iterable, List, Mapping, Tuple

from ..models.log_record import Batch, LogRecord, QueryRepeatPolicy


class RecordNormalizer:
    """Converts the supported request shapes into LogRecords."""

    def __init__(self, repeat_policy: QueryRepeatPolicy = QueryRepeatPolicy.LAST) -> None:
        self.repeat_policy = QueryRepeatPolicy(repeat_policy)

    def from_query(self, items: Iterable[Tuple[str, Any]]) -> LogRecord:
        """
        Build a record from (name, value) query pairs in request order.

        Values are kept as strings. A repeated name keeps its first or
        last occurrence depending on the repeat policy.
        """
        record: LogRecord = {}
        for name, value in items:
            if self.repeat_policy is QueryRepeatPolicy.FIRST and name in record:
                continue
            record[name] = str(value)
        return record

    def from_object(self, obj: Mapping[str, Any]) -> LogRecord:
        return dict(obj)

    def from_batch(self, items: Iterable[Mapping[str, Any]]) -> Batch:
        batch: List[LogRecord] = [self.from_object(item) for item in items]
        return batch
