# =============================================================================
# Exceptions
# =============================================================================
# Every failure the mailer reports to its caller. Session and protocol errors
# carry a snapshot of the SMTP transcript (commands sent, replies received)
# so a failed send can be diagnosed without turning on debug logging.
#
# Per-message errors (InvalidAddress, SessionResetFailed, MessageRejected)
# leave the session usable: call reset() again and retry.
# =============================================================================


class MailerError(Exception):
    """
    Base exception for all mailer operations.

    Attributes:
        transcript: Protocol transcript captured when the error was raised.
                    Empty when the error did not involve the server.
    """

    def __init__(self, message: str, transcript: list[str] | None = None) -> None:
        super().__init__(message)
        self.transcript: list[str] = list(transcript or [])

    def describe(self) -> str:
        """Return the message followed by the captured transcript, if any."""
        if not self.transcript:
            return str(self)
        return f"{self}\n\n" + "\n".join(self.transcript)


class ConnectionRefused(MailerError):
    """Raised when the server cannot be reached or rejects the greeting."""
    pass


class AccessDenied(MailerError):
    """Raised when the EHLO login exchange is rejected (before or after STARTTLS)."""
    pass


class TLSNegotiationFailure(MailerError):
    """Raised when the STARTTLS upgrade is refused or fails."""
    pass


class AuthenticationFailed(MailerError):
    """Raised when no advertised mechanism accepted the credentials."""
    pass


class SessionResetFailed(MailerError):
    """Raised when the server rejects RSET."""
    pass


class InvalidAddress(MailerError):
    """
    Raised when the server rejects a sender or recipient address.

    Attributes:
        address: The address that was rejected.
    """

    def __init__(
        self,
        message: str,
        address: str,
        transcript: list[str] | None = None,
    ) -> None:
        super().__init__(message, transcript)
        self.address = address


class MessageRejected(MailerError):
    """Raised when the server refuses the DATA command or the message itself."""
    pass


class MissingSubject(MailerError):
    """Raised when an EML file has no Subject header."""
    pass


class InvalidEmlFile(MailerError):
    """Raised when an EML file has no Content-Type header or no body."""
    pass


class AttachmentReadFailure(MailerError):
    """Raised when an attachment's byte source cannot be opened or read."""
    pass
