# =============================================================================
# Relay Mailer Core Module
# =============================================================================
# Domain models and helpers with no network dependencies:
#   - Account: An SMTP relay account (host, security, sender, BCC)
#   - Security: Connection security mode (TLS, SSL, NONE)
#   - Attachment: A file attached to a message, streamed as base64
#   - OutgoingMessage: The per-send message value
#   - Address helpers: split and parse recipient strings
# =============================================================================

from relay_mailer.core.account import Account
from relay_mailer.core.address import get_address_array, get_display_name, get_mail_address
from relay_mailer.core.attachment import Attachment
from relay_mailer.core.message import OutgoingMessage
from relay_mailer.core.security import Security

__all__ = [
    "Account",
    "Attachment",
    "OutgoingMessage",
    "Security",
    "get_address_array",
    "get_display_name",
    "get_mail_address",
]
