# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the relay-mailer test suite.
#
# FakeSMTP stands in for aiosmtplib.SMTP. It is driven by a FakeServer that
# decides how each command is answered and records what the client did, so
# tests can script a relay's behavior and inspect the exchange afterwards.
# =============================================================================

import base64
from dataclasses import dataclass, field

import aiosmtplib
import pytest
from aiosmtplib import SMTPResponse

from relay_mailer.core import Account, Security
from relay_mailer.smtp import Mailer, Session


@dataclass
class FakeServer:
    """
    Scripted behavior and recorded state of a fake relay.

    Behavior knobs are plain attributes; flip them between calls to change
    how the next command is answered.
    """
    # Behavior
    unreachable: bool = False
    greeting_code: int = 220
    reject_ehlo: bool = False
    reject_ehlo_after_tls: bool = False
    reject_starttls: bool = False
    auth_methods: list[str] = field(default_factory=lambda: ["plain", "login"])
    accepted_mechanisms: set[str] = field(default_factory=lambda: {"PLAIN", "LOGIN"})
    reject_rset: bool = False
    rejected_addresses: set[str] = field(default_factory=set)
    data_code: int = 354
    final_code: int = 250
    quit_fails: bool = False
    drop_on_drain: bool = False

    # Recorded
    commands: list[str] = field(default_factory=list)
    auth_attempts: list[str] = field(default_factory=list)
    auth_payloads: dict[str, bytes] = field(default_factory=dict)
    sender: str | None = None
    recipients: list[str] = field(default_factory=list)
    data: bytearray = field(default_factory=bytearray)
    clients: list["FakeSMTP"] = field(default_factory=list)
    close_calls: int = 0
    drain_calls: int = 0
    peak_buffered: int = 0

    def factory(self, **kwargs) -> "FakeSMTP":
        client = FakeSMTP(self, **kwargs)
        self.clients.append(client)
        return client

    @property
    def message(self) -> str:
        """Everything written during DATA, decoded."""
        return self.data.decode("iso-8859-1")


class FakeTransport:
    """Write buffer of a transport whose peer only reads when drained."""

    def __init__(self, server: FakeServer) -> None:
        self.server = server
        self.buffered = 0
        self.high_water: int | None = None

    def get_write_buffer_size(self) -> int:
        return self.buffered

    def set_write_buffer_limits(self, high=None, low=None) -> None:
        self.high_water = high


class FakeProtocol:
    """The slice of aiosmtplib's SMTPProtocol used by the data channel."""

    def __init__(self, server: FakeServer) -> None:
        self.server = server
        self.transport = FakeTransport(server)

    def write(self, data: bytes) -> None:
        self.server.data.extend(data)
        self.transport.buffered += len(data)
        self.server.peak_buffered = max(self.server.peak_buffered, self.transport.buffered)

    async def _drain_helper(self) -> None:
        self.server.drain_calls += 1
        if self.server.drop_on_drain:
            raise ConnectionResetError("Connection lost")
        self.transport.buffered = 0

    async def read_response(self, timeout=None) -> SMTPResponse:
        return SMTPResponse(self.server.final_code, "2.0.0 queued")


class FakeSMTP:
    """Stand-in for aiosmtplib.SMTP driven by a FakeServer."""

    def __init__(self, server: FakeServer, **kwargs) -> None:
        self.server = server
        self.kwargs = kwargs
        self.protocol: FakeProtocol | None = None
        self.server_auth_methods: list[str] = []
        self.tls = kwargs.get("use_tls", False)

    @property
    def is_connected(self) -> bool:
        return self.protocol is not None

    async def connect(self) -> SMTPResponse:
        if self.server.unreachable:
            raise aiosmtplib.SMTPConnectError(
                f"Error connecting to {self.kwargs['hostname']} on port "
                f"{self.kwargs['port']}: [Errno 111] Connection refused"
            )
        self.protocol = FakeProtocol(self.server)
        return SMTPResponse(self.server.greeting_code, "relay.example.com ESMTP")

    async def ehlo(self) -> SMTPResponse:
        self.server.commands.append("EHLO")
        if self.server.reject_ehlo or (self.tls and self.server.reject_ehlo_after_tls):
            raise aiosmtplib.SMTPHeloError(550, "Access denied")
        self.server_auth_methods = list(self.server.auth_methods)
        return SMTPResponse(250, "relay.example.com\nAUTH " + " ".join(self.server.auth_methods))

    async def starttls(self) -> SMTPResponse:
        self.server.commands.append("STARTTLS")
        if self.server.reject_starttls:
            raise aiosmtplib.SMTPException("SMTP STARTTLS extension not supported by server.")
        self.tls = True
        self.server_auth_methods = []
        return SMTPResponse(220, "Ready to start TLS")

    async def _auth(self, mechanism: str, payload: bytes = b"") -> SMTPResponse:
        self.server.commands.append(f"AUTH {mechanism}")
        self.server.auth_attempts.append(mechanism)
        self.server.auth_payloads[mechanism] = payload
        if mechanism in self.server.accepted_mechanisms:
            return SMTPResponse(235, "Authentication successful")
        raise aiosmtplib.SMTPAuthenticationError(535, "Authentication credentials invalid")

    async def auth_plain(self, username, password, **kwargs) -> SMTPResponse:
        return await self._auth("PLAIN", f"\0{username}\0{password}".encode())

    async def auth_crammd5(self, username, password, **kwargs) -> SMTPResponse:
        return await self._auth("CRAM-MD5")

    async def auth_login(self, username, password, **kwargs) -> SMTPResponse:
        return await self._auth("LOGIN")

    async def execute_command(self, *args: bytes, **kwargs) -> SMTPResponse:
        if args[0] == b"AUTH":
            try:
                return await self._auth(args[1].decode(), base64.b64decode(args[2]))
            except aiosmtplib.SMTPAuthenticationError:
                return SMTPResponse(535, "Authentication credentials invalid")
        if args[0] == b"DATA":
            self.server.commands.append("DATA")
            return SMTPResponse(self.server.data_code, "Start mail input")
        return SMTPResponse(500, "Command unrecognized")

    async def rset(self) -> SMTPResponse:
        self.server.commands.append("RSET")
        if self.server.reject_rset:
            raise aiosmtplib.SMTPResponseException(451, "Try again later")
        self.server.sender = None
        self.server.recipients = []
        self.server.data = bytearray()
        return SMTPResponse(250, "Flushed")

    async def mail(self, sender: str) -> SMTPResponse:
        self.server.commands.append("MAIL")
        if sender in self.server.rejected_addresses:
            raise aiosmtplib.SMTPSenderRefused(550, "Sender rejected", sender)
        self.server.sender = sender
        return SMTPResponse(250, "OK")

    async def rcpt(self, recipient: str) -> SMTPResponse:
        self.server.commands.append("RCPT")
        if recipient in self.server.rejected_addresses:
            raise aiosmtplib.SMTPRecipientRefused(550, "Mailbox unavailable", recipient)
        self.server.recipients.append(recipient)
        return SMTPResponse(250, "OK")

    async def quit(self) -> SMTPResponse:
        self.server.commands.append("QUIT")
        if self.server.quit_fails:
            raise aiosmtplib.SMTPResponseException(500, "Command unrecognized")
        self.close()
        return SMTPResponse(221, "Bye")

    def close(self) -> None:
        self.server.close_calls += 1
        self.protocol = None


@pytest.fixture
def server():
    """A fake relay accepting PLAIN and LOGIN."""
    return FakeServer()


@pytest.fixture
def open_session(server):
    """Return a coroutine function opening a Session against the fake relay."""

    async def _open(**kwargs) -> Session:
        kwargs.setdefault("mail_from", "Jane Doe <jane@example.com>")
        return await Session.open(
            "relay.example.com",
            "jane",
            "s3cret",
            smtp_factory=server.factory,
            **kwargs,
        )

    return _open


@pytest.fixture
def open_mailer(server):
    """Return a coroutine function opening a Mailer against the fake relay."""

    async def _open(**kwargs) -> Mailer:
        kwargs.setdefault("mail_from", "Jane Doe <jane@example.com>")
        return await Mailer.connect(
            "relay.example.com",
            "jane",
            "s3cret",
            smtp_factory=server.factory,
            **kwargs,
        )

    return _open


@pytest.fixture
def sample_account():
    """Create a sample Account for testing."""
    return Account(
        name="office",
        host="relay.example.com",
        user="jane@example.com",
        mail_from="Jane Doe <jane@example.com>",
        security=Security.TLS,
        bcc="archive@example.com",
    )


@pytest.fixture
def connected_smtp(server):
    """A FakeSMTP that is already connected, for testing the data channel."""
    smtp = server.factory(hostname="relay.example.com", port=25)
    smtp.protocol = FakeProtocol(server)
    return smtp
