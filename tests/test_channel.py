# =============================================================================
# Data Channel Tests
# =============================================================================

import aiosmtplib
import pytest

from relay_mailer.smtp.channel import WRITE_BUFFER_HIGH_WATER, DataChannel


@pytest.fixture
def channel(connected_smtp):
    return DataChannel(connected_smtp)


@pytest.mark.asyncio
async def test_line_endings_normalized_and_dot_stuffed(channel, server):
    await channel.write("Line one\nLine two\r\n.hidden\rlast")
    await channel.close()

    assert bytes(server.data) == (
        b"Line one\r\nLine two\r\n..hidden\r\nlast\r\n.\r\n"
    )


@pytest.mark.asyncio
async def test_crlf_split_across_writes(channel, server):
    await channel.write("first\r")
    await channel.write("\nsecond\n")
    await channel.close()

    assert bytes(server.data) == b"first\r\nsecond\r\n.\r\n"


@pytest.mark.asyncio
async def test_dot_split_across_writes(channel, server):
    await channel.write(".")
    await channel.write("x\n")
    await channel.close()

    assert bytes(server.data) == b"..x\r\n.\r\n"


@pytest.mark.asyncio
async def test_only_complete_lines_are_sent(channel, server):
    await channel.write("partial")
    assert bytes(server.data) == b""

    await channel.write(" line\n")
    assert bytes(server.data) == b"partial line\r\n"


@pytest.mark.asyncio
async def test_latin1_with_replacement(channel, server):
    await channel.write("Café Ω\n")
    await channel.close()

    assert bytes(server.data) == "Café ?\r\n.\r\n".encode("iso-8859-1")


@pytest.mark.asyncio
async def test_close_reads_reply_once(channel, server):
    response = await channel.close()
    assert response.code == 250
    assert channel.closed

    assert await channel.close() is response
    assert bytes(server.data) == b".\r\n"


@pytest.mark.asyncio
async def test_write_after_close(channel):
    await channel.close()
    with pytest.raises(ValueError):
        await channel.write("too late\n")


@pytest.mark.asyncio
async def test_waits_for_transport_to_drain(channel, server, connected_smtp):
    line = "x" * 76 + "\n"
    for _ in range(5000):
        await channel.write(line)
    await channel.close()

    assert connected_smtp.protocol.transport.high_water == WRITE_BUFFER_HIGH_WATER
    assert server.drain_calls >= 5
    assert server.peak_buffered <= WRITE_BUFFER_HIGH_WATER + len(line) + 1
    assert len(server.data) == 5000 * 78 + 3


@pytest.mark.asyncio
async def test_connection_lost_while_draining(channel, server):
    server.drop_on_drain = True

    with pytest.raises(aiosmtplib.SMTPServerDisconnected):
        for _ in range(1000):
            await channel.write("x" * 200 + "\n")
