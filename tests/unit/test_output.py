#
# tests/unit/test_output.py
#
"""
Unit tests for subprocess output relay and ready-marker detection.
"""

import asyncio
import io

import pytest

from mtest.runtime.output import contains_ready_marker, stream_output
from mtest.runtime.supervisor import STREAM_LIMIT


def _reader(*chunks: bytes, limit: int = STREAM_LIMIT) -> asyncio.StreamReader:
    reader = asyncio.StreamReader(limit=limit)
    for chunk in chunks:
        reader.feed_data(chunk)
    reader.feed_eof()
    return reader


class TestReadyMarker:
    @pytest.mark.parametrize(
        "line",
        [
            "I20240101-00:00:00.000(0)? listening on 10015",
            "test-in-console listening",
            "prefix test-in-console listening suffix",
        ],
    )
    def test_marker_lines_match(self, line: str) -> None:
        assert contains_ready_marker(line)

    @pytest.mark.parametrize("line", ["", "=> Started proxy.", "App running at: http://localhost:10123/"])
    def test_other_lines_do_not_match(self, line: str) -> None:
        assert not contains_ready_marker(line)


@pytest.mark.asyncio
class TestStreamOutput:
    async def test_lines_are_copied_verbatim(self) -> None:
        sink = io.BytesIO()

        await stream_output(_reader(b"one\n", b"two\n", b"partial"), sink)

        assert sink.getvalue() == b"one\ntwo\npartial"

    async def test_on_ready_called_for_each_marker_line(self) -> None:
        sink = io.BytesIO()
        calls: list[None] = []

        await stream_output(
            _reader(b"=> Starting\n", b"listening 10015\n", b"test-in-console listening\n"),
            sink,
            on_ready=lambda: calls.append(None),
        )

        assert len(calls) == 2

    async def test_no_callback_without_marker(self) -> None:
        calls: list[None] = []

        await stream_output(_reader(b"=> Started proxy.\n"), io.BytesIO(), on_ready=lambda: calls.append(None))

        assert calls == []

    async def test_invalid_utf8_is_relayed(self) -> None:
        sink = io.BytesIO()

        await stream_output(_reader(b"\xff\xfe 10015\n"), sink, on_ready=lambda: None)

        assert sink.getvalue() == b"\xff\xfe 10015\n"

    async def test_closed_sink_does_not_stop_marker_detection(self) -> None:
        sink = io.BytesIO()
        sink.close()
        calls: list[None] = []

        await stream_output(_reader(b"10015\n"), sink, on_ready=lambda: calls.append(None))

        assert calls == [None]

    async def test_read_error_ends_relay(self) -> None:
        reader = asyncio.StreamReader()
        reader.set_exception(OSError("pipe closed"))

        await stream_output(reader, io.BytesIO())

    async def test_line_longer_than_limit_is_relayed(self) -> None:
        long_line = b"x" * (STREAM_LIMIT + 10) + b"\n"
        sink = io.BytesIO()
        calls: list[None] = []

        await stream_output(
            _reader(long_line, b"test-in-console listening\n"),
            sink,
            on_ready=lambda: calls.append(None),
        )

        assert sink.getvalue() == long_line + b"test-in-console listening\n"
        assert calls == [None]

    async def test_marker_inside_long_line_fires_once(self) -> None:
        sink = io.BytesIO()
        calls: list[None] = []

        await stream_output(
            _reader(b"=> bundle " + b"y" * 40 + b" 10015 " + b"z" * 40 + b"\n", limit=16),
            sink,
            on_ready=lambda: calls.append(None),
        )

        assert calls == [None]
        assert sink.getvalue().endswith(b"z\n")

    async def test_marker_split_across_pieces_is_detected(self) -> None:
        reader = asyncio.StreamReader(limit=8)
        reader.feed_data(b"a" * 10 + b"test-in-con")
        sink = io.BytesIO()
        calls: list[None] = []

        task = asyncio.create_task(stream_output(reader, sink, on_ready=lambda: calls.append(None)))
        await asyncio.sleep(0.01)
        reader.feed_data(b"sole listening\n")
        reader.feed_eof()
        await asyncio.wait_for(task, timeout=1)

        assert sink.getvalue() == b"a" * 10 + b"test-in-console listening\n"
        assert calls == [None]
