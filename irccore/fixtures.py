import asyncio
import errno
from unittest.mock import MagicMock

import pytest

from . import client
from .config import Config


class FakeServer:
    """
    A connect factory standing in for the network.

    Each connection gets a fresh mock transport; what the client writes is
    recorded on it, and lines can be fed back through the protocol.
    """

    def __init__(self):
        self.transports = []
        self.protocols = []
        self.addresses = []
        self.timeouts = []

    async def connect(self, protocol, address, timeout=None):
        transport = MagicMock()
        protocol.connection_made(transport)
        self.transports.append(transport)
        self.protocols.append(protocol)
        self.addresses.append(address)
        self.timeouts.append(timeout)
        return transport, protocol

    __call__ = connect

    @property
    def connects(self):
        return len(self.transports)

    @property
    def transport(self):
        return self.transports[-1]

    @property
    def protocol(self):
        return self.protocols[-1]

    def feed(self, *lines):
        data = ''.join(line + '\r\n' for line in lines)
        self.protocol.data_received(data.encode('utf-8'))

    def written(self, transport=None):
        transport = transport or self.transport
        return b''.join(call.args[0] for call in transport.write.call_args_list)

    def lines(self, transport=None):
        return self.written(transport).decode('utf-8').split('\r\n')[:-1]

    def drop(self, exc=None):
        self.protocol.connection_lost(exc)


class UnreachableServer:
    "A connect factory that always fails"

    def __init__(self, error=None):
        self.error = error or ConnectionRefusedError(
            errno.ECONNREFUSED, 'Connection refused'
        )
        self.attempts = 0

    async def connect(self, protocol, address, timeout=None):
        self.attempts += 1
        raise self.error

    __call__ = connect


class SilentServer:
    "A connect factory whose connections never complete"

    def __init__(self):
        self.attempts = 0

    async def connect(self, protocol, address, timeout=None):
        self.attempts += 1
        await asyncio.wait_for(asyncio.Event().wait(), timeout)

    __call__ = connect


async def collect_until(queue, event_type, timeout=5):
    """
    Take events from ``queue`` until one of ``event_type`` arrives;
    return all of them.
    """
    seen = []

    async def collect():
        while True:
            event = await queue.get()
            seen.append(event)
            if isinstance(event, event_type):
                return seen

    return await asyncio.wait_for(collect(), timeout)


def drain(queue):
    "Return the events waiting in ``queue``."
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


@pytest.fixture
def loop():
    loop = asyncio.new_event_loop()
    try:
        yield loop
    finally:
        loop.close()


@pytest.fixture
def fake_server():
    return FakeServer()


@pytest.fixture
def irc_client(loop, fake_server):
    "A client wired to a fake server, not yet connected"
    config = Config(reconnect_base_delay=0.01, max_reconnect_attempts=3)
    return client.Client(config, loop=loop, connect_factory=fake_server)


@pytest.fixture
def connected(loop, irc_client):
    "A client registered as ``bestnick`` with irc.example.net"
    loop.run_until_complete(irc_client.connect('irc.example.net', 6667, 'bestnick'))
    return irc_client
