# =============================================================================
# relay-mailer: An Outbound Mail Client for SMTP Relays
# =============================================================================
#
# relay-mailer opens an authenticated, optionally encrypted session to an
# SMTP relay and sends messages encoded by hand, the way mail clients do:
#
#   - RFC 2047 encoded headers and folded subjects
#   - Quoted-printable plain text, 8bit HTML
#   - multipart/mixed with attachments streamed as base64
#   - Relaying EML files saved by a mail client
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "relay-mailer"

from relay_mailer.core import Account, Attachment, Security
from relay_mailer.errors import (
    AccessDenied,
    AttachmentReadFailure,
    AuthenticationFailed,
    ConnectionRefused,
    InvalidAddress,
    InvalidEmlFile,
    MailerError,
    MessageRejected,
    MissingSubject,
    SessionResetFailed,
    TLSNegotiationFailure,
)
from relay_mailer.smtp import Mailer, Session

__all__ = [
    "__version__",
    "__app_name__",
    "Account",
    "Attachment",
    "Mailer",
    "Security",
    "Session",
    # Errors
    "MailerError",
    "AccessDenied",
    "AttachmentReadFailure",
    "AuthenticationFailed",
    "ConnectionRefused",
    "InvalidAddress",
    "InvalidEmlFile",
    "MessageRejected",
    "MissingSubject",
    "SessionResetFailed",
    "TLSNegotiationFailure",
]
