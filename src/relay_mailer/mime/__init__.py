# =============================================================================
# MIME Module
# =============================================================================
# Encoding rules for putting text into a message:
#   - RFC 2047 encoded words and subject folding for headers
#   - Quoted-printable for plain text bodies
#   - Header block and multipart/mixed framing
# =============================================================================

from relay_mailer.mime.encoding import (
    encode_display_address,
    encode_quoted_printable,
    encode_subject,
    encode_word,
    is_html,
    needs_encoding,
)
from relay_mailer.mime.headers import BoundaryGenerator, build_header_block

__all__ = [
    "BoundaryGenerator",
    "build_header_block",
    "encode_display_address",
    "encode_quoted_printable",
    "encode_subject",
    "encode_word",
    "is_html",
    "needs_encoding",
]
