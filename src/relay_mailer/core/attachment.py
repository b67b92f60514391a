# =============================================================================
# Attachment Model
# =============================================================================
# A file attached to an outgoing message, and the streaming base64 encoder
# that writes it.
#
# MIME base64 lines are 76 characters long. Every 3 bytes become 4 base64
# characters, so a 76 character line holds 19 groups, i.e. 57 source bytes.
# The encoder reads the source 57 bytes at a time and never holds more than
# one line of it in memory.
# =============================================================================

import base64
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from relay_mailer.errors import AttachmentReadFailure

logger = logging.getLogger(__name__)

# Source bytes per encoded line (57 bytes -> 76 base64 characters)
LINE_BYTES = 57


def read_fully(stream: BinaryIO, size: int) -> bytes:
    """
    Read exactly `size` bytes unless the stream ends first.

    Streams may return fewer bytes than requested without being at the end
    (pipes, sockets). Keep reading until the buffer is full or read() returns
    nothing.

    Args:
        stream: Binary file-like object.
        size: Number of bytes wanted.

    Returns:
        The bytes read; shorter than `size` only at end of stream.
    """
    buffer = bytearray()
    while len(buffer) < size:
        chunk = stream.read(size - len(buffer))
        if not chunk:
            break
        buffer.extend(chunk)
    return bytes(buffer)


@dataclass
class Attachment:
    """
    A file attached to an outgoing message.

    The byte source is either an open binary stream supplied by the caller,
    or a path that is opened (and closed) when the attachment is written.
    A caller's stream is borrowed: it is left open unless close_source is set.

    Attributes:
        name: File name shown to the recipient.
        source: Open binary stream with the content.
        path: File to read the content from, when no stream is given.
        close_source: Close `source` once it has been written.

    Example:
        >>> attachment = Attachment.from_path("reports/march.pdf")
        >>> attachment.name
        'march.pdf'
    """
    name: str
    source: BinaryIO | None = None
    path: Path | None = None
    close_source: bool = False

    def __post_init__(self) -> None:
        if (self.source is None) == (self.path is None):
            raise ValueError("Attachment needs exactly one of source or path")
        if self.path is not None:
            self.path = Path(self.path)

    @classmethod
    def from_path(cls, path: str | Path, name: str | None = None) -> "Attachment":
        """Create an attachment for a file on disk, named after the file by default."""
        path = Path(path)
        return cls(name=name or path.name, path=path)

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        """
        Yield the byte source for the duration of one write.

        Raises:
            AttachmentReadFailure: If the file cannot be opened.
        """
        if self.path is not None:
            try:
                stream = open(self.path, "rb")
            except OSError as e:
                raise AttachmentReadFailure(
                    f"Unable to open attachment {self.name!r}: {e}"
                ) from e
            with stream:
                yield stream
        else:
            try:
                yield self.source
            finally:
                if self.close_source:
                    self.source.close()

    def iter_base64_lines(self) -> Iterator[str]:
        """
        Encode the content as MIME base64, one line at a time.

        Each line is preceded by CRLF (the part headers written before it do
        not end with one). Every line encodes 57 bytes except the last, which
        encodes whatever was left.

        Yields:
            "\\r\\n" followed by the base64 of one chunk.

        Raises:
            AttachmentReadFailure: If the source cannot be opened or read.
        """
        logger.debug(f"Encoding attachment {self.name!r}")
        with self.open() as stream:
            while True:
                try:
                    chunk = read_fully(stream, LINE_BYTES)
                except OSError as e:
                    raise AttachmentReadFailure(
                        f"Unable to read attachment {self.name!r}: {e}"
                    ) from e
                if not chunk:
                    break
                yield "\r\n" + base64.b64encode(chunk).decode("ascii")
                if len(chunk) < LINE_BYTES:
                    # A short read here means the source is exhausted
                    break
