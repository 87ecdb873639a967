"""
Tests for the record sinks and sink construction.
"""

import io
from typing import Any, Dict

import pytest

from conftest import FailingSink, RecordingSink
from logjam.core.exceptions import SinkError
from logjam.core.sinks import ConsoleSink, FanoutSink, StructlogSink, build_sink


class TestConsoleSink:
    """Test the field-name console sink."""

    @pytest.mark.asyncio
    async def test_writes_sorted_field_names(self) -> None:
        stream = io.StringIO()
        sink = ConsoleSink(stream)

        await sink.deliver({"zeta": 1, "alpha": "x", "mid": {"nested": True}})

        assert stream.getvalue() == "FieldNames: alpha, mid, zeta\n"

    @pytest.mark.asyncio
    async def test_values_are_not_written(self) -> None:
        stream = io.StringIO()
        await ConsoleSink(stream).deliver({"password": "hunter2"})

        assert "hunter2" not in stream.getvalue()

    @pytest.mark.asyncio
    async def test_defaults_to_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        await ConsoleSink().deliver({"b": 1, "a": 2})

        assert capsys.readouterr().out == "FieldNames: a, b\n"


class TestFanoutSink:
    """Test delivery to several sinks."""

    @pytest.mark.asyncio
    async def test_delivers_to_every_sink(self) -> None:
        first, second = RecordingSink(), RecordingSink()
        await FanoutSink([first, second]).deliver({"a": 1})

        assert first.records == [{"a": 1}]
        assert second.records == [{"a": 1}]

    @pytest.mark.asyncio
    async def test_failure_is_raised_after_all_sinks_ran(self) -> None:
        failing, recording = FailingSink(), RecordingSink()

        with pytest.raises(SinkError) as exc_info:
            await FanoutSink([failing, recording]).deliver({"a": 1})

        assert recording.records == [{"a": 1}]
        assert "failing" in exc_info.value.details["failures"]
        assert str(exc_info.value) == "1 of 2 sinks failed"


class TestBuildSink:
    """Test building sinks from configured names."""

    def test_single_name(self) -> None:
        assert isinstance(build_sink(["console"]), ConsoleSink)
        assert isinstance(build_sink(["log"]), StructlogSink)

    def test_several_names_fan_out(self) -> None:
        sink = build_sink(["console", "log"])

        assert isinstance(sink, FanoutSink)
        assert [type(s) for s in sink.sinks] == [ConsoleSink, StructlogSink]

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown sink"):
            build_sink(["kafka"])

    def test_empty_list(self) -> None:
        with pytest.raises(ValueError):
            build_sink([])

    @pytest.mark.asyncio
    async def test_structlog_sink_does_not_raise(self) -> None:
        record: Dict[str, Any] = {"a": 1, "nested": {"b": [1, 2]}}
        await StructlogSink().deliver(record)
