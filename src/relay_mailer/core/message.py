# =============================================================================
# Outgoing Message Model
# =============================================================================
# The transient value assembled for one send: who it goes to, what it says,
# and what is attached. It only lives for the duration of Mailer.send().
# =============================================================================

from dataclasses import dataclass, field

from relay_mailer.core.address import get_address_array
from relay_mailer.core.attachment import Attachment


@dataclass
class OutgoingMessage:
    """
    Represents a message being sent.

    Attributes:
        to: Primary recipient (the first entry of the recipient string).
        cc: Remaining recipients, listed in the Cc header.
        subject: Raw subject text (encoded when the header is built).
        body: Raw body text, plain or HTML.
        attachments: Files to attach, in order.
        boundary: Multipart boundary; set only when there are attachments.
    """
    to: str
    cc: list[str] = field(default_factory=list)
    subject: str = ""
    body: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    boundary: str | None = None

    @classmethod
    def from_recipients(
        cls,
        mail_to: str,
        subject: str = "",
        body: str = "",
        attachments: list[Attachment] | None = None,
    ) -> "OutgoingMessage":
        """
        Build a message from a semicolon separated recipient string.

        The first address becomes the primary recipient, the rest are CC.

        Raises:
            ValueError: If the string holds no address.
        """
        recipients = get_address_array(mail_to)
        if not recipients:
            raise ValueError("No recipients specified")
        return cls(
            to=recipients[0],
            cc=recipients[1:],
            subject=subject,
            body=body,
            attachments=list(attachments or []),
        )

    @property
    def recipients(self) -> list[str]:
        """All explicit recipients, primary first."""
        return [self.to, *self.cc]

    @property
    def is_multipart(self) -> bool:
        """True when the message is framed as multipart/mixed."""
        return self.boundary is not None
