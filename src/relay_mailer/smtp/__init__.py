# =============================================================================
# SMTP Module
# =============================================================================
# Handles sending email through an SMTP relay.
#
# Features:
#   - Connection with SSL, STARTTLS or no encryption
#   - Authentication with PLAIN, CRAM-MD5, LOGIN, XOAUTH and XOAUTH2
#   - Streamed DATA phase (constant memory, dot-stuffed)
#   - Message composition: plain text, HTML, attachments, EML relay
#
# This module uses aiosmtplib for the SMTP protocol exchange.
# =============================================================================

from relay_mailer.smtp.auth import AuthMechanism, try_mechanism
from relay_mailer.smtp.channel import DataChannel
from relay_mailer.smtp.mailer import Mailer
from relay_mailer.smtp.session import Session, SessionState

__all__ = [
    "AuthMechanism",
    "DataChannel",
    "Mailer",
    "Session",
    "SessionState",
    "try_mechanism",
]
