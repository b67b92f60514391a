# =============================================================================
# Attachment Streaming Tests
# =============================================================================

import base64
import io

import pytest

from relay_mailer.core.attachment import LINE_BYTES, Attachment, read_fully
from relay_mailer.errors import AttachmentReadFailure


class ShortReadStream(io.RawIOBase):
    """Binary stream that never returns more than `step` bytes per read."""

    def __init__(self, data: bytes, step: int = 10) -> None:
        self._data = io.BytesIO(data)
        self._step = step

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = self._step
        return self._data.read(min(size, self._step))


class FailingStream(io.RawIOBase):
    """Binary stream that fails after the first read."""

    def __init__(self) -> None:
        self._reads = 0

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        self._reads += 1
        if self._reads > 1:
            raise OSError("device not ready")
        return b"a" * size


def _decode(lines: list[str]) -> bytes:
    return b"".join(base64.b64decode(line[2:]) for line in lines)


class TestReadFully:
    def test_accumulates_short_reads(self):
        stream = ShortReadStream(bytes(range(100)), step=7)
        assert read_fully(stream, LINE_BYTES) == bytes(range(57))

    def test_stops_at_end(self):
        assert read_fully(io.BytesIO(b"abc"), LINE_BYTES) == b"abc"
        assert read_fully(io.BytesIO(b""), LINE_BYTES) == b""


class TestBase64Lines:
    def test_200_bytes_gives_four_lines(self):
        data = bytes(range(200))
        lines = list(Attachment("data.bin", io.BytesIO(data)).iter_base64_lines())

        assert len(lines) == 4
        assert all(line.startswith("\r\n") for line in lines)
        assert [len(line) - 2 for line in lines] == [76, 76, 76, 40]
        assert lines[-1].endswith("=")
        assert _decode(lines) == data

    def test_exact_multiple_has_no_empty_line(self):
        data = b"z" * (LINE_BYTES * 2)
        lines = list(Attachment("z.bin", io.BytesIO(data)).iter_base64_lines())
        assert len(lines) == 2
        assert _decode(lines) == data

    def test_empty_source(self):
        assert list(Attachment("empty.bin", io.BytesIO(b"")).iter_base64_lines()) == []

    def test_short_reads_are_not_end_of_file(self):
        data = bytes(range(200))
        lines = list(Attachment("data.bin", ShortReadStream(data)).iter_base64_lines())
        assert [len(line) - 2 for line in lines] == [76, 76, 76, 40]
        assert _decode(lines) == data

    def test_read_error(self):
        attachment = Attachment("broken.bin", FailingStream())
        lines = attachment.iter_base64_lines()
        next(lines)
        with pytest.raises(AttachmentReadFailure):
            next(lines)


class TestSources:
    def test_from_path(self, tmp_path):
        path = tmp_path / "report.pdf"
        path.write_bytes(b"%PDF-1.4 test")

        attachment = Attachment.from_path(path)
        assert attachment.name == "report.pdf"
        assert _decode(list(attachment.iter_base64_lines())) == b"%PDF-1.4 test"

    def test_from_path_with_name(self, tmp_path):
        path = tmp_path / "tmp123.bin"
        path.write_bytes(b"x")
        assert Attachment.from_path(path, name="invoice.pdf").name == "invoice.pdf"

    def test_missing_file(self, tmp_path):
        attachment = Attachment.from_path(tmp_path / "missing.pdf")
        with pytest.raises(AttachmentReadFailure):
            list(attachment.iter_base64_lines())

    def test_borrowed_stream_left_open(self):
        stream = io.BytesIO(b"data")
        list(Attachment("a.bin", stream).iter_base64_lines())
        assert not stream.closed

    def test_close_source(self):
        stream = io.BytesIO(b"data")
        list(Attachment("a.bin", stream, close_source=True).iter_base64_lines())
        assert stream.closed

    def test_needs_exactly_one_source(self, tmp_path):
        with pytest.raises(ValueError):
            Attachment("nothing.bin")
        with pytest.raises(ValueError):
            Attachment("both.bin", io.BytesIO(b""), path=tmp_path / "x")
