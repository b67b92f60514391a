# =============================================================================
# SMTP Authentication Mechanisms
# =============================================================================
# The SASL mechanisms the mailer knows how to speak, and one dispatch function
# that tries a single mechanism and reports whether the server accepted it.
#
# PLAIN, CRAM-MD5 and LOGIN are delegated to aiosmtplib. XOAUTH and XOAUTH2
# are sent as an AUTH command with an initial client response:
#
#   - XOAUTH:  the password is the caller-prepared, signed token
#   - XOAUTH2: the password is the OAuth 2.0 access token; the SASL string
#              "user=<user>^Aauth=Bearer <token>^A^A" is built here
# =============================================================================

import base64
import logging
from enum import Enum

import aiosmtplib
from aiosmtplib import SMTPStatus

logger = logging.getLogger(__name__)


class AuthMechanism(Enum):
    """SASL mechanisms supported, in the order tried when the server lists none."""
    PLAIN = "PLAIN"
    CRAM_MD5 = "CRAM-MD5"
    LOGIN = "LOGIN"
    XOAUTH = "XOAUTH"
    XOAUTH2 = "XOAUTH2"

    @classmethod
    def from_name(cls, name: str) -> "AuthMechanism | None":
        """Look up a mechanism by its advertised name; None if unsupported."""
        try:
            return cls(name.strip().upper())
        except ValueError:
            return None


def advertised_mechanisms(names: list[str]) -> list[AuthMechanism]:
    """
    Filter the server's advertised mechanism names to the supported ones.

    The server's order is kept and duplicates are dropped.
    """
    mechanisms: list[AuthMechanism] = []
    for name in names:
        mechanism = AuthMechanism.from_name(name)
        if mechanism is not None and mechanism not in mechanisms:
            mechanisms.append(mechanism)
    return mechanisms


def _xoauth2_string(user: str, token: str) -> bytes:
    return f"user={user}\x01auth=Bearer {token}\x01\x01".encode("utf-8")


async def _auth_initial_response(
    smtp: aiosmtplib.SMTP, mechanism: AuthMechanism, payload: bytes
) -> bool:
    response = await smtp.execute_command(
        b"AUTH", mechanism.value.encode("ascii"), base64.b64encode(payload)
    )
    if response.code == SMTPStatus.auth_continue:
        # The server sent an error challenge; an empty line ends the exchange
        response = await smtp.execute_command(b"")
    return response.code == SMTPStatus.auth_successful


async def try_mechanism(
    smtp: aiosmtplib.SMTP,
    mechanism: AuthMechanism,
    user: str,
    password: str,
) -> bool:
    """
    Attempt one authentication mechanism.

    Args:
        smtp: Connected transport.
        mechanism: Mechanism to use.
        user: Login name.
        password: Password, or token for the XOAUTH mechanisms.

    Returns:
        True if the server accepted the credentials.

    Raises:
        aiosmtplib.SMTPException: On transport failures other than a
            rejected authentication (e.g., the server disconnected).
    """
    try:
        if mechanism is AuthMechanism.PLAIN:
            await smtp.auth_plain(user, password)
        elif mechanism is AuthMechanism.CRAM_MD5:
            await smtp.auth_crammd5(user, password)
        elif mechanism is AuthMechanism.LOGIN:
            await smtp.auth_login(user, password)
        elif mechanism is AuthMechanism.XOAUTH:
            return await _auth_initial_response(
                smtp, mechanism, password.encode("utf-8")
            )
        else:
            return await _auth_initial_response(
                smtp, mechanism, _xoauth2_string(user, password)
            )
    except aiosmtplib.SMTPAuthenticationError as e:
        logger.debug(f"AUTH {mechanism.value} rejected: {e.code} {e.message}")
        return False

    return True
