# =============================================================================
# Connection Security
# =============================================================================

from enum import Enum


class Security(Enum):
    """
    Security protocol for the SMTP connection.

        - TLS:  cleartext connect, upgraded with STARTTLS (port 587)
        - SSL:  TLS negotiated on connect (port 465)
        - NONE: no encryption at all. Not recommended. (port 25)
    """
    TLS = "tls"
    SSL = "ssl"
    NONE = "none"

    @property
    def default_port(self) -> int:
        """Port used when the caller does not give one."""
        return _DEFAULT_PORTS[self]

    @classmethod
    def parse(cls, value: "str | Security") -> "Security":
        """
        Accept a Security member or its name/value in any case.

        Raises:
            ValueError: If the value names no security mode.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown security mode {value!r} (expected tls, ssl or none)"
            ) from None


_DEFAULT_PORTS = {
    Security.TLS: 587,
    Security.SSL: 465,
    Security.NONE: 25,
}
