# =============================================================================
# SMTP Session
# =============================================================================
# Owns one connection to a mail relay and walks it through the SMTP protocol.
#
# Connection sequence (Session.open):
#
#   connect ──> EHLO ──┬──────────────────────────────> AUTH ──> READY
#                      └─ (TLS mode) STARTTLS ──> EHLO ─┘
#
# Some servers (Office 365 among them) forget everything said before
# STARTTLS, so the EHLO exchange is repeated after the upgrade. The first
# EHLO is kept because other servers only advertise STARTTLS to a client that
# has introduced itself.
#
# Per message:
#
#   RSET ──> MAIL FROM ──> RCPT TO (×n) ──> DATA ──> (body) ──> "." ──> 250
#
# Every command and reply is kept in a transcript that is attached to the
# errors raised, and cleared on each successful RSET.
#
# A Session is not safe for concurrent use: send one message at a time.
# =============================================================================

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from enum import Enum, auto
from types import TracebackType
from typing import Callable

import aiosmtplib
from aiosmtplib import SMTPResponse, SMTPStatus

from relay_mailer.core.security import Security
from relay_mailer.errors import (
    AccessDenied,
    AuthenticationFailed,
    ConnectionRefused,
    InvalidAddress,
    MessageRejected,
    SessionResetFailed,
    TLSNegotiationFailure,
)
from relay_mailer.smtp.auth import AuthMechanism, advertised_mechanisms, try_mechanism
from relay_mailer.smtp.channel import DataChannel

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Where a Session is in its protocol lifecycle."""
    DISCONNECTED = auto()
    CONNECTED = auto()          # Greeting received
    AUTHENTICATED = auto()      # First EHLO accepted
    TLS_UPGRADED = auto()       # STARTTLS done (TLS mode only)
    REAUTHENTICATED = auto()    # EHLO repeated over TLS
    READY = auto()              # Credentials accepted, can send
    SENDING = auto()            # DATA phase open
    CLOSED = auto()


class Session:
    """
    An authenticated SMTP session.

    Use Session.open() to build one; it returns only fully connected and
    authenticated sessions.

    Usage:
        >>> session = await Session.open(
        ...     "smtp.example.com", "jane", "secret",
        ...     mail_from="Jane Doe <jane@example.com>",
        ... )
        >>> await session.reset()
        >>> await session.register_sender("jane@example.com")
        >>> await session.register_recipient("bob@example.com")
        >>> async with session.data_channel() as channel:
        ...     await channel.write("Subject: Hi\\r\\n\\r\\nHello Bob\\r\\n")
        >>> await session.confirm_sent(channel)
        >>> await session.close()

    Attributes:
        state: Current SessionState.
    """

    # Timeout for SMTP operations (seconds)
    TIMEOUT = 30

    def __init__(
        self,
        smtp: aiosmtplib.SMTP,
        mail_from: str,
        bcc: str | None = None,
        timeout: float | None = TIMEOUT,
    ) -> None:
        """
        Wrap a transport. Prefer Session.open(), which also connects.

        Args:
            smtp: Transport, not yet connected.
            mail_from: Sender used for every message.
            bcc: Hidden recipients added to every message ("a@x; b@y").
            timeout: Timeout for the end-of-data reply.
        """
        self._smtp = smtp
        self._mail_from = mail_from.strip()
        self._bcc = bcc or ""
        self._timeout = timeout
        self._transcript: list[str] = []
        self.state = SessionState.DISCONNECTED

    @property
    def mail_from(self) -> str:
        """Sender, fixed for the life of the session."""
        return self._mail_from

    @property
    def bcc(self) -> str:
        """Hidden recipients, fixed for the life of the session."""
        return self._bcc

    @property
    def transcript(self) -> list[str]:
        """Commands and replies since the last reset (credentials masked)."""
        return list(self._transcript)

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY

    # =========================================================================
    # Connection Management
    # =========================================================================

    @classmethod
    async def open(
        cls,
        host: str,
        user: str,
        password: str,
        *,
        mail_from: str,
        port: int | None = None,
        security: Security | str = Security.TLS,
        verify_certificate: bool = True,
        bcc: str | None = None,
        timeout: float | None = TIMEOUT,
        smtp_factory: Callable[..., aiosmtplib.SMTP] = aiosmtplib.SMTP,
    ) -> "Session":
        """
        Connect, log in and authenticate.

        Args:
            host: SMTP relay host.
            user: Login name.
            password: Password (or token for XOAUTH/XOAUTH2).
            mail_from: Sender for every message sent on this session.
            port: Port. None selects 587 (TLS), 465 (SSL) or 25 (NONE).
            security: Connection security mode.
            verify_certificate: Check the server certificate.
            bcc: Hidden recipients for every message.
            timeout: Transport timeout in seconds.
            smtp_factory: Builds the transport; aiosmtplib.SMTP by default.

        Returns:
            A session in the READY state.

        Raises:
            ConnectionRefused: If the server cannot be reached or refuses us.
            AccessDenied: If an EHLO exchange is rejected.
            TLSNegotiationFailure: If STARTTLS fails (TLS mode).
            AuthenticationFailed: If the credentials are not accepted.
        """
        security = Security.parse(security)
        if port is None:
            port = security.default_port

        smtp = smtp_factory(
            hostname=host,
            port=port,
            use_tls=security is Security.SSL,
            start_tls=False,    # STARTTLS is driven explicitly below
            validate_certs=verify_certificate,
            timeout=timeout,
        )
        session = cls(smtp, mail_from, bcc=bcc, timeout=timeout)

        try:
            await session._connect(host, port, security)
            await session.authenticate(user, password)
        except Exception:
            session._abort()
            raise

        logger.info(f"Successfully connected to SMTP {host}:{port}")
        return session

    async def _connect(self, host: str, port: int, security: Security) -> None:
        logger.info(f"Connecting to SMTP {host}:{port} ({security.value})")
        self._record(">", f"CONNECT {host}:{port}")

        try:
            response = await self._smtp.connect()
        except (aiosmtplib.SMTPException, OSError) as e:
            self._record("!", str(e))
            raise self._error(
                ConnectionRefused, f"Failed to connect to SMTP {host}:{port}: {e}"
            ) from e

        self._reply(response)
        if not 200 <= response.code < 300:
            raise self._error(ConnectionRefused, "SMTP server refused connection.")
        self.state = SessionState.CONNECTED

        await self._ehlo()
        self.state = SessionState.AUTHENTICATED

        if security is Security.TLS:
            await self._starttls()
            self.state = SessionState.TLS_UPGRADED

            # Servers may drop what they knew about us on the upgrade
            await self._ehlo()
            self.state = SessionState.REAUTHENTICATED
        elif security is Security.NONE:
            logger.warning(
                f"Connection to {host}:{port} is not encrypted; "
                "credentials will be sent in cleartext"
            )

    async def _ehlo(self) -> None:
        """EHLO login exchange."""
        self._record(">", "EHLO")
        try:
            response = await self._smtp.ehlo()
        except aiosmtplib.SMTPException as e:
            self._record("!", str(e))
            raise self._error(AccessDenied, "Access denied.") from e
        self._reply(response)

    async def _starttls(self) -> None:
        logger.debug("Upgrading to TLS via STARTTLS")
        self._record(">", "STARTTLS")
        try:
            response = await self._smtp.starttls()
        except (aiosmtplib.SMTPException, OSError) as e:
            self._record("!", str(e))
            raise self._error(TLSNegotiationFailure, "TLS negotiation failure.") from e
        self._reply(response)

    async def authenticate(self, user: str, password: str) -> AuthMechanism:
        """
        Authenticate with the first mechanism the server accepts.

        Mechanisms are tried in the order the server advertises them,
        skipping the ones we do not support. A server that advertises none
        gets every supported mechanism in turn.

        Returns:
            The mechanism that succeeded.

        Raises:
            AuthenticationFailed: If every candidate was rejected.
        """
        advertised = list(self._smtp.server_auth_methods or [])
        if advertised:
            mechanisms = advertised_mechanisms(advertised)
        else:
            logger.debug("Server did not advertise AUTH mechanisms, trying all")
            mechanisms = list(AuthMechanism)

        logger.debug(f"Authenticating as {user}")
        for mechanism in mechanisms:
            self._record(">", f"AUTH {mechanism.value} ********")
            try:
                accepted = await try_mechanism(self._smtp, mechanism, user, password)
            except aiosmtplib.SMTPException as e:
                self._record("!", str(e))
                raise self._error(
                    AuthenticationFailed, f"SMTP authentication failed for {user}: {e}"
                ) from e

            self._record("<", "accepted" if accepted else "rejected")
            if accepted:
                logger.debug(f"SMTP authentication successful ({mechanism.value})")
                self.state = SessionState.READY
                return mechanism

        raise self._error(
            AuthenticationFailed,
            f"SMTP authentication failed for {user} "
            f"(server offers: {', '.join(advertised) or 'nothing'})",
        )

    async def close(self) -> None:
        """
        Log out and disconnect.

        The transport is closed even when QUIT fails. A QUIT failure is
        raised after the disconnect; calling close() again does nothing.
        """
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED

        try:
            if self._smtp.is_connected:
                logger.debug("Disconnecting from SMTP")
                await self._smtp.quit()
        except aiosmtplib.SMTPException as e:
            logger.warning(f"Error during SMTP logout: {e}")
            raise
        finally:
            self._smtp.close()

    def _abort(self) -> None:
        """Drop the transport of a session that failed to open."""
        self.state = SessionState.CLOSED
        self._smtp.close()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # =========================================================================
    # Message Protocol
    # =========================================================================

    async def reset(self) -> None:
        """
        Start a new message: RSET and clear the transcript.

        Raises:
            SessionResetFailed: If the session is closed or the server refuses.
        """
        if self.state is SessionState.CLOSED:
            raise self._error(SessionResetFailed, "Session is closed.")

        self._record(">", "RSET")
        try:
            response = await self._smtp.rset()
        except aiosmtplib.SMTPException as e:
            self._record("!", str(e))
            raise self._error(
                SessionResetFailed, "Unable to reset SMTP connection."
            ) from e

        self._transcript.clear()
        self._reply(response)
        self.state = SessionState.READY

    async def register_sender(self, address: str) -> None:
        """
        MAIL FROM for the current message.

        Raises:
            InvalidAddress: If the server rejects the address.
        """
        self._record(">", f"MAIL FROM:<{address}>")
        try:
            response = await self._smtp.mail(address)
        except aiosmtplib.SMTPSenderRefused as e:
            self._record("<", f"{e.code} {e.message}")
            raise self._address_error(f"Invalid email: {address}", address) from e
        except aiosmtplib.SMTPException as e:
            raise self._send_error(e) from e
        self._reply(response)

    async def register_recipient(self, address: str) -> None:
        """
        RCPT TO for the current message.

        Raises:
            InvalidAddress: If the server rejects the address.
        """
        self._record(">", f"RCPT TO:<{address}>")
        try:
            response = await self._smtp.rcpt(address)
        except aiosmtplib.SMTPRecipientRefused as e:
            self._record("<", f"{e.code} {e.message}")
            raise self._address_error(f"Invalid address: {address}", address) from e
        except aiosmtplib.SMTPException as e:
            raise self._send_error(e) from e
        self._reply(response)

    async def open_data_channel(self) -> DataChannel:
        """
        Send DATA and return the channel to write the message to.

        The caller must close the channel on every path; data_channel() does
        that for you.

        Raises:
            MessageRejected: If the server does not accept DATA.
        """
        self._record(">", "DATA")
        try:
            response = await self._smtp.execute_command(b"DATA")
        except aiosmtplib.SMTPException as e:
            raise self._send_error(e) from e

        self._reply(response)
        if response.code != SMTPStatus.start_input:
            raise self._error(MessageRejected, "Unable to send message data.")

        self.state = SessionState.SENDING
        return DataChannel(self._smtp, timeout=self._timeout)

    @asynccontextmanager
    async def data_channel(self) -> AsyncIterator[DataChannel]:
        """
        Open the data channel and close it when the block exits.

        The channel is closed (flushed and terminated) whether the block
        completes or raises; an exception from the block then propagates.
        Transport failures while writing are raised as MessageRejected.
        Call confirm_sent() afterwards to check the server accepted it.
        """
        channel = await self.open_data_channel()
        try:
            yield channel
        except aiosmtplib.SMTPException as e:
            raise self._send_error(e) from e
        finally:
            try:
                await channel.close()
            except aiosmtplib.SMTPException as e:
                raise self._send_error(e) from e
            finally:
                self.state = SessionState.READY

    async def confirm_sent(self, channel: DataChannel) -> None:
        """
        Check the server's reply to the end of the message.

        Raises:
            MessageRejected: If the server did not accept the message.
        """
        response = channel.response
        if response is None:
            raise self._error(MessageRejected, "Message data was not completed.")

        self._reply(response)
        if response.code != SMTPStatus.completed:
            raise self._error(MessageRejected, "The message could not be sent.")

    # =========================================================================
    # Transcript and Errors
    # =========================================================================

    def _record(self, direction: str, text: str) -> None:
        self._transcript.append(f"{direction} {text}")

    def _reply(self, response: SMTPResponse) -> None:
        self._record("<", f"{response.code} {response.message}")

    def _error(self, error_class: type, message: str):
        return error_class(message, transcript=self._transcript)

    def _address_error(self, message: str, address: str) -> InvalidAddress:
        return InvalidAddress(message, address, transcript=self._transcript)

    def _send_error(self, e: Exception) -> MessageRejected:
        self._record("!", str(e))
        return self._error(MessageRejected, f"The message could not be sent: {e}")
