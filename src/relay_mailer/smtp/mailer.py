# =============================================================================
# Mailer
# =============================================================================
# Composes messages and sends them over a Session.
#
# Key responsibilities:
#   - Envelope: sender, primary recipient, hidden (BCC) and CC recipients
#   - Header block: Date/From/To/Cc/Subject with RFC 2047 encoding
#   - Body framing: text/plain (quoted-printable), text/html (8bit), or
#     multipart/mixed when there are attachments
#   - Streaming attachments as base64 without loading them in memory
#   - Relaying a previously written EML file with a fresh envelope
#
# Message layout with attachments:
#
#   <header block>
#   MIME-Version: 1.0
#   Content-Type: multipart/mixed; boundary=B
#
#   --B
#   <body part>
#   --B
#   <attachment part> (one per attachment)
#   --B--
# =============================================================================

import logging
import os
from collections.abc import Iterator
from contextlib import closing, nullcontext
from dataclasses import dataclass
from types import TracebackType
from typing import TYPE_CHECKING, TextIO

import keyring

from relay_mailer.core.address import get_address_array, get_mail_address
from relay_mailer.core.attachment import Attachment
from relay_mailer.core.message import OutgoingMessage
from relay_mailer.errors import (
    AuthenticationFailed,
    InvalidAddress,
    InvalidEmlFile,
    MissingSubject,
)
from relay_mailer.mime.encoding import encode_quoted_printable, is_html
from relay_mailer.mime.headers import (
    CRLF,
    BoundaryGenerator,
    attachment_part_header,
    build_header_block,
    close_delimiter,
    delimiter,
    multipart_header,
)
from relay_mailer.smtp.channel import DataChannel
from relay_mailer.smtp.session import Session

if TYPE_CHECKING:
    from relay_mailer.core import Account

logger = logging.getLogger(__name__)

EML_CHARSET = "iso-8859-1"
SUBJECT_HEADER = "Subject: "
CONTENT_TYPE_HEADER = "Content-Type:"


@dataclass
class EmlHeaders:
    """
    What the mailer keeps from an EML file's header section.

    Attributes:
        subject: Subject value as written in the file (already encoded),
                 continuation lines joined with "\\n".
        content_type: The "Content-Type:" line.
        boundary: A later line declaring "boundary=", if any.
        separator: The line that ended the headers: "" for the blank
                   separator, None if the file ended first.
    """
    subject: str | None = None
    content_type: str | None = None
    boundary: str | None = None
    separator: str | None = None


def parse_eml_headers(lines: Iterator[str]) -> EmlHeaders:
    """
    Read header lines up to the first blank line.

    Consumes `lines` up to and including the blank separator, so iterating it
    afterwards yields the body. Lines must not carry line endings.
    """
    headers = EmlHeaders()
    line = next(lines, None)

    while line:
        if line.startswith(SUBJECT_HEADER):
            # The subject can span several lines
            parts = [line[len(SUBJECT_HEADER):]]
            line = next(lines, None)
            while line and line[0].isspace():
                parts.append(line)
                line = next(lines, None)
            headers.subject = "\n".join(parts)
            if not line:
                break

        if line.startswith(CONTENT_TYPE_HEADER):
            headers.content_type = line
        elif "boundary=" in line:
            # Usually the continuation of the Content-Type line
            headers.boundary = line

        line = next(lines, None)

    headers.separator = line
    return headers


def _strip_line_endings(stream: TextIO) -> Iterator[str]:
    for line in stream:
        yield line.rstrip("\r\n")


class Mailer:
    """
    Sends messages over an authenticated SMTP session.

    Usage:
        >>> async with await Mailer.connect(
        ...     "smtp.example.com", "jane", "secret",
        ...     mail_from="Jane Doe <jane@example.com>",
        ... ) as mailer:
        ...     await mailer.send("bob@example.com", "Hi", "Hello Bob")
        ...     await mailer.send(
        ...         "bob@example.com; carol@example.com", "Report", "Attached.",
        ...         Attachment.from_path("report.pdf"),
        ...     )
        ...     await mailer.send_eml("bob@example.com", "saved.eml")

    Attributes:
        session: The session messages are sent over.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self._boundaries = BoundaryGenerator()

    @classmethod
    async def connect(cls, host: str, user: str, password: str, **kwargs) -> "Mailer":
        """
        Open a session and wrap it. Keyword arguments go to Session.open().
        """
        return cls(await Session.open(host, user, password, **kwargs))

    @classmethod
    async def for_account(
        cls,
        account: "Account",
        password: str | None = None,
        **kwargs,
    ) -> "Mailer":
        """
        Connect using a configured account.

        Args:
            account: Account configuration.
            password: Password; read from the system keyring when omitted.

        Raises:
            AuthenticationFailed: If no password is available.
        """
        if password is None:
            password = keyring.get_password(account.keyring_service, account.user)

        if not password:
            raise AuthenticationFailed(
                f"No password found in keyring for {account.user}. "
                f"Set it with: keyring set {account.keyring_service} {account.user}"
            )

        return await cls.connect(
            account.host,
            account.user,
            password,
            mail_from=account.mail_from,
            port=account.port,
            security=account.security,
            verify_certificate=account.verify_certificate,
            bcc=account.bcc,
            **kwargs,
        )

    async def close(self) -> None:
        """Close the underlying session."""
        await self.session.close()

    async def __aenter__(self) -> "Mailer":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # =========================================================================
    # Sending
    # =========================================================================

    async def send(
        self,
        mail_to: str,
        subject: str,
        text: str,
        *attachments: Attachment,
    ) -> None:
        """
        Send a message.

        Args:
            mail_to: Recipients separated by semicolons. The first is the
                     primary recipient, the others are copied (Cc).
            subject: Subject text.
            text: Body, plain text or HTML (starting with "<html>").
            attachments: Files to attach.

        Raises:
            InvalidAddress: If there is no recipient or one is rejected.
            SessionResetFailed: If the server refuses RSET.
            MessageRejected: If the server refuses the message.
            AttachmentReadFailure: If an attachment cannot be read.
        """
        try:
            message = OutgoingMessage.from_recipients(
                mail_to, subject, text, list(attachments)
            )
        except ValueError as e:
            raise InvalidAddress(str(e), mail_to or "") from e

        if message.attachments:
            message.boundary = self._boundaries.next()

        logger.info(f"Sending email to {', '.join(message.recipients)}")
        await self._prepare_envelope(message.to, message.cc)
        header = build_header_block(
            self.session.mail_from, message.to, message.subject, message.cc
        )

        async with self.session.data_channel() as channel:
            await channel.write(header)
            if message.is_multipart:
                await channel.write(multipart_header(message.boundary))
                await channel.write(delimiter(message.boundary))

            await self._write_body(channel, message.body)

            for attachment in message.attachments:
                await channel.write(delimiter(message.boundary))
                await self._write_attachment(channel, attachment)

            if message.is_multipart:
                await channel.write(close_delimiter(message.boundary))

        await self.session.confirm_sent(channel)
        logger.info("Email sent successfully")

    async def send_eml(self, mail_to: str, eml: str | os.PathLike | TextIO) -> None:
        """
        Send a message saved as an EML file.

        The envelope and the From/To/Cc headers come from this mailer, not
        from the file. The file's Subject, Content-Type (and boundary) lines
        are kept, and its body is relayed unchanged.

        Args:
            mail_to: Recipients separated by semicolons.
            eml: Path to the file, or an open text stream decoded as
                 ISO-8859-1.

        Raises:
            MissingSubject: If the file has no Subject header.
            InvalidEmlFile: If it has no Content-Type header or no body.
            InvalidAddress: If there is no recipient or one is rejected.
            MessageRejected: If the server refuses the message.
        """
        recipients = get_address_array(mail_to)
        if not recipients:
            raise InvalidAddress("No recipients specified", mail_to or "")
        to, cc = recipients[0], recipients[1:]

        if isinstance(eml, (str, os.PathLike)):
            try:
                source = open(eml, "r", encoding=EML_CHARSET, newline=None)
            except OSError as e:
                raise InvalidEmlFile(f"Unable to read EML file {eml}: {e}") from e
        else:
            source = nullcontext(eml)

        with source as stream:
            lines = _strip_line_endings(stream)
            headers = parse_eml_headers(lines)

            if headers.subject is None:
                raise MissingSubject("EML file has no subject.")
            if headers.separator is None or headers.content_type is None:
                raise InvalidEmlFile("Invalid EML file.")

            logger.info(f"Sending EML file to {', '.join(recipients)}")
            await self._prepare_envelope(to, cc)
            header = build_header_block(
                self.session.mail_from, to, headers.subject, cc, encode=False
            )

            async with self.session.data_channel() as channel:
                await channel.write(header)
                await channel.write(headers.content_type + CRLF)
                if headers.boundary is not None:
                    await channel.write(headers.boundary + CRLF)

                await channel.write(headers.separator + CRLF)
                for line in lines:
                    await channel.write(line + CRLF)

        await self.session.confirm_sent(channel)
        logger.info("EML file sent successfully")

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _prepare_envelope(self, to: str, cc: list[str]) -> None:
        """
        Reset the session and register sender and recipients.

        Order: sender, primary recipient, hidden recipients, copies.
        """
        await self.session.reset()
        await self.session.register_sender(get_mail_address(self.session.mail_from))
        await self.session.register_recipient(get_mail_address(to))

        for hidden in get_address_array(self.session.bcc):
            await self.session.register_recipient(get_mail_address(hidden))

        for copy in cc:
            await self.session.register_recipient(get_mail_address(copy))

    async def _write_body(self, channel: DataChannel, text: str) -> None:
        if is_html(text):
            await channel.write("Content-Type: text/html; charset=ISO-8859-1" + CRLF)
            await channel.write("Content-Transfer-Encoding: 8bit" + CRLF + CRLF)
            await channel.write((text or "") + CRLF)
        else:
            await channel.write("Content-Type: text/plain; charset=ISO-8859-1" + CRLF)
            await channel.write("Content-Transfer-Encoding: quoted-printable" + CRLF + CRLF)
            await channel.write(encode_quoted_printable(text) + CRLF)

    async def _write_attachment(self, channel: DataChannel, attachment: Attachment) -> None:
        await channel.write(attachment_part_header(attachment.name))
        with closing(attachment.iter_base64_lines()) as lines:
            for line in lines:
                await channel.write(line)
