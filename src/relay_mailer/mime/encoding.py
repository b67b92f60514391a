# =============================================================================
# Header and Body Encoding
# =============================================================================
# Text transformations needed to put arbitrary text into a message:
#
#   - RFC 2047 encoded words for non-ASCII header text (=?UTF-8?B?...?=)
#   - RFC 822 folding of long subjects
#   - Quoted-printable (RFC 2045) for plain text bodies
#   - Detection of HTML bodies
#
# Header text is encoded as UTF-8. Bodies are sent as ISO-8859-1.
# =============================================================================

import base64

from relay_mailer.core.address import get_display_name

# Maximum length of a quoted-printable line, including the soft break "="
QP_MAX_LINE_LENGTH = 76

# Maximum length of a folded subject line, counted from "Subject: "
SUBJECT_MAX_LINE_LENGTH = 75
SUBJECT_PREFIX = "Subject: "

# Source bytes per encoded subject word. "Subject: =?UTF-8?B?" leaves room
# for 56 base64 characters on the first line (14 groups of 4, i.e. 42
# bytes) and 64 on each continuation line (16 groups, 48 bytes).
SUBJECT_FIRST_CHUNK = 42
SUBJECT_NEXT_CHUNK = 48

# Header folding: newline followed by one space
FOLD = "\n "

BODY_CHARSET = "iso-8859-1"
HEADER_CHARSET = "utf-8"


def needs_encoding(text: str) -> bool:
    """True if any character is outside printable ASCII (32-126)."""
    return any(ord(c) < 32 or ord(c) > 126 for c in text)


def _encoded_word(data: bytes) -> str:
    return "=?UTF-8?B?" + base64.b64encode(data).decode("ascii") + "?="


def encode_word(text: str | None) -> str:
    """
    Encode header text as one RFC 2047 encoded word if necessary.

    Printable ASCII is returned unchanged.

    Example:
        >>> encode_word("Hello")
        'Hello'
        >>> encode_word("Café")
        '=?UTF-8?B?Q2Fmw6k=?='
    """
    if not text:
        return ""
    if not needs_encoding(text):
        return text
    return _encoded_word(text.encode(HEADER_CHARSET))


def encode_display_address(address: str) -> str:
    """
    Encode the display name of "Name <user@host>", leaving "<user@host>" as is.

    Bare addresses and printable ASCII names are returned unchanged. An
    encoded name is separated from "<user@host>" by one space.

    Example:
        >>> encode_display_address("José <jose@x.com>")
        '=?UTF-8?B?Sm9zw6k=?= <jose@x.com>'
    """
    name = get_display_name(address)
    if not needs_encoding(name):
        return address
    return encode_word(name) + " " + address[address.rfind("<"):]


def _fold_subject(subject: str) -> str:
    """
    Word-wrap an ASCII subject at 75 columns, counting "Subject: ".

    Continuation lines start with a single space. Words are never split.
    """
    folded = ""
    line_start = -len(SUBJECT_PREFIX)

    for word in subject.split():
        if folded:
            length = len(folded) - line_start
            if length + 1 + len(word) > SUBJECT_MAX_LINE_LENGTH:
                folded += FOLD
                # The continuation space counts towards the line
                line_start = len(folded) - 1
            else:
                folded += " "
        folded += word

    return folded


def encode_subject(subject: str | None) -> str:
    """
    Encode a subject for the Subject header.

    ASCII subjects are folded into lines of at most 75 columns. Subjects that
    need encoding are split into encoded words of 42 bytes (first line) and
    48 bytes (following lines) of UTF-8, joined with a header fold.

    Args:
        subject: Raw subject text.

    Returns:
        Header-ready subject text (folds use a bare "\\n ").
    """
    if not subject:
        return ""

    if not needs_encoding(subject):
        return _fold_subject(subject)

    content = subject.encode(HEADER_CHARSET)
    words = []
    chunk = SUBJECT_FIRST_CHUNK
    position = 0

    while position < len(content):
        words.append(_encoded_word(content[position:position + chunk]))
        position += chunk
        chunk = SUBJECT_NEXT_CHUNK

    return FOLD.join(words)


def is_html(body: str | None) -> bool:
    """True if the body starts with "<html>" (case-insensitive) after whitespace."""
    if not body:
        return False
    return body.lstrip()[:6].lower() == "<html>"


def encode_quoted_printable(body: str | None) -> str:
    """
    Encode a body as quoted-printable (RFC 2045) over ISO-8859-1.

    Rules, byte by byte:
        - "\\n" becomes a hard line break (CRLF)
        - 33-126 except "=" are written as is
        - a space is written as is unless it ends the text or a line
        - everything else is written as "=XX"

    A soft line break ("=" CRLF) is inserted whenever the next token would
    bring the line to 76 columns, so no output line, soft break included,
    is longer than 76 characters.

    Characters outside ISO-8859-1 are replaced with "?".
    """
    if not body:
        return ""

    content = body.encode(BODY_CHARSET, errors="replace")
    last = len(content) - 1
    output = []
    column = 0

    for i, byte in enumerate(content):
        if byte == 0x0A:
            output.append("\r\n")
            column = 0
            continue

        if (33 <= byte <= 126 and byte != 0x3D) or (
            byte == 0x20 and i < last and content[i + 1] != 0x0A
        ):
            token = chr(byte)
        else:
            token = f"={byte:02X}"

        if column + len(token) >= QP_MAX_LINE_LENGTH:
            output.append("=\r\n")
            column = 0

        output.append(token)
        column += len(token)

    return "".join(output)
