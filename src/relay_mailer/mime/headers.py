# =============================================================================
# Header Block and MIME Framing
# =============================================================================
# Builds the text written at the top of the DATA phase and the multipart
# delimiters around each part.
#
# The header block ends with a single CRLF: the blank line that separates
# headers from body is NOT included, so MIME directives (MIME-Version,
# Content-Type, ...) can still be appended to it by the caller.
# =============================================================================

import time
from email.utils import formatdate

from relay_mailer.mime.encoding import encode_display_address, encode_subject, encode_word

CRLF = "\r\n"

# Sent in the X-Mailer header
MAILER_NAME = "relay-mailer"


def build_header_block(
    mail_from: str,
    to: str,
    subject: str,
    cc: list[str] | None = None,
    *,
    encode: bool = True,
    date: str | None = None,
) -> str:
    """
    Build the Date/From/To/Cc/Subject header block.

    Args:
        mail_from: Sender ("Name <addr>" or bare).
        to: Primary recipient.
        subject: Subject text.
        cc: Carbon-copy recipients.
        encode: Encode the subject. Pass False for a subject that is already
                in header form (e.g., copied from an EML file).
        date: Date header value; defaults to now.

    Returns:
        Header lines, each ending in CRLF, without the terminating blank line.
    """
    lines = [
        f"Date: {date or formatdate(localtime=True)}",
        f"From: {encode_display_address(mail_from)}",
        f"To: {encode_display_address(to)}",
    ]
    if cc:
        lines.append("Cc: " + ", ".join(encode_display_address(a) for a in cc))
    lines.append(f"Subject: {encode_subject(subject) if encode else subject}")
    lines.append(f"X-Mailer: {MAILER_NAME}")
    return CRLF.join(lines) + CRLF


class BoundaryGenerator:
    """
    Produces multipart boundaries from the clock and a sequence number.

    Boundaries only need to be unique within one message; the sequence keeps
    them distinct for messages sent within the same millisecond.
    """

    def __init__(self) -> None:
        self._sequence = 0

    def next(self) -> str:
        self._sequence += 1
        millis = time.time_ns() // 1_000_000
        return f"_boundary_{millis}_{millis:x}_{self._sequence}_"


def multipart_header(boundary: str) -> str:
    """MIME directives that turn the header block into multipart/mixed."""
    return (
        "MIME-Version: 1.0" + CRLF
        + f"Content-Type: multipart/mixed; boundary={boundary}" + CRLF
    )


def delimiter(boundary: str) -> str:
    """Line introducing the next part."""
    return f"{CRLF}--{boundary}{CRLF}"


def close_delimiter(boundary: str) -> str:
    """Line closing the multipart body."""
    return f"{CRLF}--{boundary}--{CRLF}"


def attachment_part_header(name: str) -> str:
    """Headers of an attachment part; the base64 lines follow directly."""
    file_name = f'"{encode_word(name)}"'
    return (
        f"Content-Type: application/octet-stream; name={file_name}" + CRLF
        + "Content-Transfer-Encoding: base64" + CRLF
        + f"Content-Disposition: attachment; filename={file_name}" + CRLF
    )
