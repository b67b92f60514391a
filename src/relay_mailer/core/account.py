# =============================================================================
# Account Model
# =============================================================================
# Represents a configured outbound mail account: which relay to talk to, how
# to secure the connection, and the fixed sender / hidden recipients used for
# every message sent through it.
#
# IMPORTANT: Passwords are NOT stored here. They are retrieved from the system
# keyring at runtime using the 'keyring' library. This keeps credentials secure
# and out of config files.
# =============================================================================

from dataclasses import dataclass

from relay_mailer.core.security import Security


@dataclass
class Account:
    """
    Represents an SMTP relay account.

    Attributes:
        name: A unique identifier for this account (e.g., "office", "alerts").
              Used as the key in config files and for keyring lookups.
        host: Hostname of the SMTP relay (e.g., "smtp.office365.com").
        user: Login name sent during authentication.
        mail_from: Sender, bare or "Display Name <user@host>".
                   Defaults to the user name if not specified.
        port: Port for the connection. None selects the default for the
              security mode (587 TLS, 465 SSL, 25 NONE).
        security: Connection security mode.
        verify_certificate: Check the server certificate and host name.
        bcc: Hidden recipients added to every message, separated by
             semicolons.

    Example:
        >>> account = Account(
        ...     name="office",
        ...     host="smtp.example.com",
        ...     user="jane@example.com",
        ...     mail_from="Jane Doe <jane@example.com>",
        ... )
    """

    name: str                           # Unique account identifier
    host: str                           # SMTP relay host
    user: str                           # Login name
    mail_from: str = ""                 # Envelope and "From" sender
    port: int | None = None             # None = default for security mode
    security: Security = Security.TLS   # STARTTLS by default
    verify_certificate: bool = True
    bcc: str = ""                       # "a@x.com; b@y.com"

    def __post_init__(self) -> None:
        """
        Post-initialization processing.
        Normalizes the security mode and defaults the sender to the user.
        """
        self.security = Security.parse(self.security)
        self.mail_from = self.mail_from.strip()
        if not self.mail_from:
            self.mail_from = self.user

    @property
    def effective_port(self) -> int:
        """Configured port, or the default for the security mode."""
        return self.port if self.port is not None else self.security.default_port

    @property
    def keyring_service(self) -> str:
        """
        Returns the service name used for keyring password storage.

        Passwords can be managed with the keyring CLI:
            keyring set relay-mailer:office jane@example.com
        """
        return f"relay-mailer:{self.name}"

    def __str__(self) -> str:
        """Human-readable representation showing account name and sender."""
        return f"{self.name} <{self.mail_from}>"

    def __repr__(self) -> str:
        """Developer-friendly representation with key fields."""
        return (
            f"Account(name={self.name!r}, user={self.user!r}, "
            f"smtp={self.host}:{self.effective_port}, "
            f"security={self.security.value})"
        )
