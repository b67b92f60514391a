# =============================================================================
# SMTP Data Channel
# =============================================================================
# Streams a message body to the server after DATA has been accepted.
#
# aiosmtplib only sends complete messages held in memory. To stream large
# attachments the channel writes straight to the protocol, applying the same
# transformations aiosmtplib applies to a whole message:
#
#   - every line ending (CRLF, bare LF, bare CR) becomes CRLF
#   - lines starting with "." get an extra "." (RFC 5321 dot-stuffing)
#   - the message ends with "." on a line of its own
#
# Only the current partial line is buffered. Writes wait for the transport
# to flush whenever more than WRITE_BUFFER_HIGH_WATER bytes are queued, so
# memory use does not grow with the size of the message.
# =============================================================================

import logging
import re

import aiosmtplib
from aiosmtplib import SMTPResponse

logger = logging.getLogger(__name__)

_LINE_ENDINGS = re.compile(r"\r\n|\n|\r")

CHARSET = "iso-8859-1"

# Buffered bytes above which writers wait for the transport to flush
WRITE_BUFFER_HIGH_WATER = 64 * 1024


class DataChannel:
    """
    Write sink for the DATA phase of one message.

    Created by Session.open_data_channel(). Always close it, also when the
    writing fails: closing terminates the DATA phase and reads the server's
    final reply, which keeps the session in sync for the next message.

    Attributes:
        response: The server's reply to the end of data, set by close().
    """

    def __init__(self, smtp: aiosmtplib.SMTP, timeout: float | None = None) -> None:
        self._smtp = smtp
        self._timeout = timeout
        self._pending = ""
        self._closed = False
        self.bytes_written = 0
        self.response: SMTPResponse | None = None

        # Pause the protocol at the same mark _drain() waits on
        transport = smtp.protocol.transport
        if transport is not None:
            transport.set_write_buffer_limits(high=WRITE_BUFFER_HIGH_WATER)

    @property
    def closed(self) -> bool:
        return self._closed

    async def _send_lines(self, lines: list[str]) -> None:
        if not lines:
            return
        stuffed = ["." + line if line.startswith(".") else line for line in lines]
        data = ("\r\n".join(stuffed) + "\r\n").encode(CHARSET, errors="replace")
        self._smtp.protocol.write(data)
        self.bytes_written += len(data)
        await self._drain()

    async def _drain(self) -> None:
        """
        Wait for the transport to flush once its buffer passes the high-water mark.

        aiosmtplib's protocol pauses writing above the transport's limits; its
        drain helper resumes when the peer has read enough.
        """
        protocol = self._smtp.protocol
        transport = protocol.transport
        if transport is None or transport.get_write_buffer_size() <= WRITE_BUFFER_HIGH_WATER:
            return
        try:
            await protocol._drain_helper()
        except ConnectionError as e:
            raise aiosmtplib.SMTPServerDisconnected(
                f"Connection lost while sending data: {e}"
            ) from e

    async def write(self, text: str) -> None:
        """
        Write message text.

        Complete lines are sent immediately; a trailing partial line is kept
        until the next write or close(). A CR at the end of the text is held
        back in case the next write starts with LF.

        Raises:
            ValueError: If the channel is closed.
            aiosmtplib.SMTPServerDisconnected: If the connection was lost.
        """
        if self._closed:
            raise ValueError("Data channel is closed")

        buffer = self._pending + text
        held = ""
        if buffer.endswith("\r"):
            buffer, held = buffer[:-1], "\r"

        lines = _LINE_ENDINGS.split(buffer)
        self._pending = lines.pop() + held
        await self._send_lines(lines)

    async def close(self) -> SMTPResponse | None:
        """
        Flush the partial line, end the data and read the server's reply.

        Safe to call more than once; later calls return the first reply.
        """
        if self._closed:
            return self.response
        self._closed = True

        if self._pending:
            # A held-back CR is the end of the last line
            await self._send_lines([self._pending.removesuffix("\r")])
            self._pending = ""
        self._smtp.protocol.write(b".\r\n")

        self.response = await self._smtp.protocol.read_response(timeout=self._timeout)
        logger.debug(
            f"End of data after {self.bytes_written} bytes: "
            f"{self.response.code} {self.response.message}"
        )
        return self.response
