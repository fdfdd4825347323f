import asyncio
import errno
import threading

import pytest

import irccore
from irccore import events
from irccore.client import Client, ConnectionState
from irccore.config import Config
from irccore.exceptions import (
    AlreadyConnected,
    AlreadyConnecting,
    ConnectionTimeout,
    InvalidArgument,
    NotConnected,
    SocketError,
)
from irccore.fixtures import (
    FakeServer,
    SilentServer,
    UnreachableServer,
    collect_until,
    drain,
)


def test_version():
    assert isinstance(irccore._get_version(), str)


def test_registration(connected, fake_server):
    assert fake_server.written() == (
        b'NICK bestnick\r\nUSER bestnick 0 * bestnick\r\n'
    )
    assert fake_server.addresses == [('irc.example.net', 6667)]
    assert fake_server.timeouts == [30]
    assert connected.state is ConnectionState.connected
    assert connected.nick == 'bestnick'


def test_connect_events(loop, irc_client):
    queue = irc_client.events.listen()
    loop.run_until_complete(irc_client.connect('irc.example.net', 6667, 'bestnick'))
    assert drain(queue) == [
        events.StateChanged(ConnectionState.disconnected, ConnectionState.connecting),
        events.Connecting('irc.example.net', 6667, 'bestnick'),
        events.StateChanged(ConnectionState.connecting, ConnectionState.connected),
        events.Connected('irc.example.net', 6667, 'bestnick'),
    ]


def test_privmsg_sends_msg(connected, fake_server):
    connected.send_message('#best-channel', 'You are great')
    fake_server.transport.write.assert_called_with(
        b'PRIVMSG #best-channel :You are great\r\n'
    )


def test_privmsg_fails_on_embedded_carriage_returns(connected):
    with pytest.raises(ValueError):
        connected.send_message('#best-channel', 'You are great\nSo are you')


def test_join_adds_channel_prefix(connected, fake_server):
    connected.join('test')
    assert fake_server.lines()[-1] == 'JOIN #test'


def test_send_requires_connection(irc_client):
    with pytest.raises(NotConnected):
        irc_client.join('#test')


@pytest.mark.parametrize(
    'host, port, nick',
    [
        ('', 6667, 'bestnick'),
        ('irc.example.net', 0, 'bestnick'),
        ('irc.example.net', 65536, 'bestnick'),
        ('irc.example.net', '6667', 'bestnick'),
        ('irc.example.net', 6667, ''),
        ('irc.example.net', 6667, 'best nick'),
    ],
)
def test_connect_validates_arguments(loop, irc_client, fake_server, host, port, nick):
    with pytest.raises(InvalidArgument):
        loop.run_until_complete(irc_client.connect(host, port, nick))
    assert fake_server.connects == 0
    assert irc_client.state is ConnectionState.disconnected


def test_connect_twice(loop, connected):
    with pytest.raises(AlreadyConnected):
        loop.run_until_complete(connected.connect('irc.example.net', 6667, 'other'))


def test_connect_while_reconnecting(loop):
    client = Client(loop=loop, connect_factory=UnreachableServer())
    loop.run_until_complete(client.connect('irc.example.net', 6667, 'bestnick'))
    assert client.state is ConnectionState.reconnecting
    with pytest.raises(AlreadyConnecting):
        loop.run_until_complete(client.connect('irc.example.net', 6667, 'bestnick'))
    client.disconnect()


def test_fragmented_lines(connected, fake_server):
    queue = connected.events.listen()
    fake_server.protocol.data_received(b'PRIV')
    assert drain(queue) == []
    fake_server.protocol.data_received(b'MSG #a :hi\r\n:b!u@h PRIVMSG #a :th')
    fake_server.protocol.data_received(b'ere\n')
    messages = [event for event in drain(queue) if isinstance(event, events.Message)]
    assert [(m.nick, m.content) for m in messages] == [
        ('system', 'hi'),
        ('b', 'there'),
    ]


def test_malformed_line_skipped(connected, fake_server):
    queue = connected.events.listen()
    fake_server.feed(':lonely', '', ':a!u@h PRIVMSG #x :still here')
    assert drain(queue) == [
        events.Message('a', '#x', 'still here', events.MessageKind.message)
    ]


@pytest.mark.parametrize(
    'feature, nicks',
    [
        # an empty PREFIX means the server has no membership prefixes
        ('PREFIX=', ['@alice', 'bob']),
        # unparseable values are ignored and the defaults stay
        ('PREFIX=ov', ['alice', 'bob']),
    ],
)
def test_odd_prefix_feature_keeps_connection(connected, fake_server, feature, nicks):
    queue = connected.events.listen()
    fake_server.feed(
        ':s 005 bestnick {feature} :are supported by this server'.format(**locals()),
        ':s 353 bestnick = #x :@alice bob',
        ':a!u@h PRIVMSG #x :still here',
    )
    received = drain(queue)
    assert events.Message('a', '#x', 'still here') in received
    assert not [e for e in received if isinstance(e, (events.Error, events.Disconnected))]
    assert connected.state is ConnectionState.connected
    (channel,) = connected.snapshot().channels
    assert [user.nick for user in channel.users] == nicks


def test_handler_failure_does_not_end_connection(connected, fake_server, caplog):
    dispatch = connected.connection._on_message

    def flaky(msg):
        if msg.command == 'BOOM':
            raise RuntimeError("handler failed")
        dispatch(msg)

    connected.connection._on_message = flaky
    queue = connected.events.listen()
    fake_server.feed('BOOM', ':a!u@h PRIVMSG #x :after')
    assert drain(queue) == [events.Message('a', '#x', 'after')]
    assert 'handler failed' in caplog.text
    assert connected.state is ConnectionState.connected


def test_non_utf8_input(connected, fake_server):
    queue = connected.events.listen()
    fake_server.protocol.data_received(b':a!u@h PRIVMSG #x :caf\xe9\r\n')
    (event,) = drain(queue)
    assert event.content == 'caf\xe9'


def test_ping_answered_with_pong(connected, fake_server):
    fake_server.feed('PING :irc.example.net')
    assert fake_server.lines()[-1] == 'PONG irc.example.net'


def test_session_follows_server(connected, fake_server):
    fake_server.feed(
        ':s 001 bestnick :Welcome',
        ':bestnick!u@h JOIN #x',
        ':s 332 bestnick #x :Topic of x',
        ':s 353 bestnick = #x :@bestnick +bob carol',
        ':s 366 bestnick #x :End of /NAMES list.',
    )
    snapshot = connected.snapshot()
    assert snapshot.state is ConnectionState.connected
    assert snapshot.nick == 'bestnick'
    (channel,) = snapshot.channels
    assert channel.name == '#x'
    assert channel.topic == 'Topic of x'
    assert {user.nick: set(user.modes) for user in channel.users} == {
        'bestnick': {'op'},
        'bob': {'voice'},
        'carol': set(),
    }


class TestKeepalive:
    def test_first_check_pings(self, connected, fake_server):
        connected.connection.check_keepalive()
        assert fake_server.lines()[-1] == 'PING :irc.example.net'

    def test_no_ping_within_threshold(self, connected, fake_server):
        connected.connection.check_keepalive()
        connected.connection.check_keepalive()
        pings = [line for line in fake_server.lines() if line.startswith('PING')]
        assert len(pings) == 1

    def test_pong_counts_as_activity(self, connected, fake_server):
        fake_server.feed(':irc.example.net PONG irc.example.net :irc.example.net')
        connected.connection.check_keepalive()
        assert not any(line.startswith('PING') for line in fake_server.lines())

    def test_ping_after_threshold(self, loop, fake_server):
        config = Config(keepalive_interval=0.01, keepalive_threshold=0.03)
        client = Client(config, loop=loop, connect_factory=fake_server)
        loop.run_until_complete(client.connect('irc.example.net', 6667, 'bestnick'))
        loop.run_until_complete(asyncio.sleep(0.2))
        pings = [line for line in fake_server.lines() if line.startswith('PING')]
        assert 2 <= len(pings) < 10
        client.disconnect()

    def test_check_ignored_when_disconnected(self, irc_client):
        irc_client.connection.check_keepalive()


class TestDisconnect:
    def test_quit_sent(self, loop, connected, fake_server):
        queue = connected.events.listen()
        connected.disconnect('see you')
        assert fake_server.lines()[-1] == 'QUIT :see you'
        fake_server.transport.close.assert_called_once_with()
        assert connected.state is ConnectionState.disconnected
        assert drain(queue) == [
            events.StateChanged(
                ConnectionState.connected, ConnectionState.disconnected
            ),
            events.Disconnected('see you'),
        ]

    def test_no_reconnect_after_local_disconnect(self, loop, connected, fake_server):
        connected.disconnect()
        loop.run_until_complete(asyncio.sleep(0.1))
        assert fake_server.connects == 1
        assert connected.state is ConnectionState.disconnected

    def test_session_cleared(self, connected, fake_server):
        fake_server.feed(':bestnick!u@h JOIN #x')
        connected.disconnect()
        assert connected.snapshot().channels == ()

    def test_disconnect_when_disconnected(self, irc_client):
        queue = irc_client.events.listen()
        irc_client.disconnect()
        assert drain(queue) == []

    def test_reconnect_after_disconnect(self, loop, connected, fake_server):
        connected.disconnect()
        loop.run_until_complete(connected.connection.reconnect())
        assert fake_server.connects == 2
        assert connected.state is ConnectionState.connected

    def test_stale_protocol_ignored(self, loop, connected, fake_server):
        old_transport, old_protocol = fake_server.transport, fake_server.protocol
        connected.disconnect()
        loop.run_until_complete(connected.connect('irc.example.net', 6667, 'bestnick'))
        queue = connected.events.listen()
        old_protocol.data_received(b':a!u@h PRIVMSG #x :late\r\n')
        old_protocol.connection_lost(None)
        assert drain(queue) == []
        assert old_transport.close.called
        assert connected.state is ConnectionState.connected

    def test_cancel_in_flight_connect(self, loop):
        server = SilentServer()
        client = Client(loop=loop, connect_factory=server)
        task = loop.create_task(client.connect('irc.example.net', 6667, 'bestnick'))
        loop.run_until_complete(asyncio.sleep(0.01))
        assert client.state is ConnectionState.connecting
        client.disconnect()
        loop.run_until_complete(task)
        assert client.state is ConnectionState.disconnected
        assert server.attempts == 1

    def test_caller_cancels_connect(self, loop):
        client = Client(loop=loop, connect_factory=SilentServer())
        queue = client.events.listen()
        pending = client.connect('irc.example.net', 6667, 'bestnick')
        with pytest.raises(asyncio.TimeoutError):
            loop.run_until_complete(asyncio.wait_for(pending, 0.05))
        assert client.state is ConnectionState.disconnected
        assert drain(queue)[-1] == events.Disconnected('Connection attempt cancelled')

        # nothing is left over to block the next attempt
        server = FakeServer()
        client.connection.connect_factory = server
        loop.run_until_complete(client.connect('irc.example.net', 6667, 'bestnick'))
        assert client.state is ConnectionState.connected
        assert server.connects == 1


class TestReconnect:
    def test_unreachable_host(self, loop):
        client = Client(loop=loop, connect_factory=UnreachableServer())
        queue = client.events.listen()
        loop.run_until_complete(client.connect('badhost', 6667, 'nick'))
        received = drain(queue)
        errors = [event for event in received if isinstance(event, events.Error)]
        (error,) = errors
        assert isinstance(error.cause, SocketError)
        assert error.cause.error.errno == errno.ECONNREFUSED
        assert received.index(error) < received.index(events.Reconnecting(1, 5))
        assert client.state is ConnectionState.reconnecting
        client.disconnect()

    def test_connect_timeout(self, loop):
        config = Config(connect_timeout=0.01)
        client = Client(config, loop=loop, connect_factory=SilentServer())
        queue = client.events.listen()
        loop.run_until_complete(client.connect('irc.example.net', 6667, 'bestnick'))
        (error,) = [event for event in drain(queue) if isinstance(event, events.Error)]
        assert isinstance(error.cause, ConnectionTimeout)
        client.disconnect()

    def test_bounded_attempts(self, loop):
        server = UnreachableServer()
        config = Config(reconnect_base_delay=0.125, max_reconnect_attempts=3)
        client = Client(config, loop=loop, connect_factory=server)
        queue = client.events.listen()
        loop.run_until_complete(client.connect('irc.example.net', 6667, 'bestnick'))
        received = loop.run_until_complete(collect_until(queue, events.ReconnectFailed))
        loop.run_until_complete(asyncio.sleep(0.1))
        received += drain(queue)

        # the initial attempt plus three automatic ones
        assert server.attempts == 4
        reconnecting = [e for e in received if isinstance(e, events.Reconnecting)]
        assert reconnecting == [
            events.Reconnecting(1, 0.125),
            events.Reconnecting(2, 0.25),
            events.Reconnecting(3, 0.375),
        ]
        failed = [e for e in received if isinstance(e, events.ReconnectFailed)]
        assert failed == [events.ReconnectFailed(3)]
        assert client.state is ConnectionState.disconnected

    def test_dropped_connection_reconnects(self, loop, connected, fake_server):
        queue = connected.events.listen()
        fake_server.feed(':bestnick!u@h JOIN #x')
        fake_server.drop(ConnectionResetError(errno.ECONNRESET, 'Connection reset'))
        assert connected.state is ConnectionState.reconnecting
        assert connected.snapshot().channels == ()
        received = loop.run_until_complete(collect_until(queue, events.Connected))
        assert events.Disconnected('Connection reset') in received
        assert events.Reconnecting(1, 0.01) in received
        assert fake_server.connects == 2
        assert fake_server.lines() == [
            'NICK bestnick',
            'USER bestnick 0 * bestnick',
        ]
        assert connected.state is ConnectionState.connected

    def test_successful_connect_resets_budget(self, loop, connected, fake_server):
        queue = connected.events.listen()
        received = []
        for attempt in range(4):
            fake_server.drop()
            received += loop.run_until_complete(collect_until(queue, events.Connected))
        reconnecting = [e for e in received if isinstance(e, events.Reconnecting)]
        assert reconnecting == [events.Reconnecting(1, 0.01)] * 4
        assert connected.connection.recon.attempts == 0
        assert fake_server.connects == 5


class TestUserInput:
    def test_slash_join(self, connected, fake_server):
        connected.submit('/join python')
        assert fake_server.lines()[-1] == 'JOIN #python'

    def test_plain_text_goes_to_target(self, connected, fake_server):
        connected.submit('hello there', target='#python')
        assert fake_server.lines()[-1] == 'PRIVMSG #python :hello there'

    def test_plain_text_without_target(self, connected, fake_server):
        queue = connected.events.listen()
        connected.submit('hello there')
        (notice,) = drain(queue)
        assert isinstance(notice, events.SystemNotice)
        assert fake_server.lines()[-1] == 'USER bestnick 0 * bestnick'

    def test_unknown_command(self, connected):
        queue = connected.events.listen()
        connected.send_command('bogus', [], '#python')
        assert drain(queue) == [
            events.SystemNotice(
                'Unknown command: /bogus. Type /help for available commands.',
                '#python',
            )
        ]

    def test_slash_quit(self, connected, fake_server):
        connected.submit('/quit going home')
        assert fake_server.lines()[-1] == 'QUIT :going home'
        assert connected.state is ConnectionState.disconnected


def test_call_threadsafe(loop, connected, fake_server):
    results = []

    def from_thread():
        future = connected.call_threadsafe(connected.join, 'python')
        results.append(future.result(timeout=5))

    async def run():
        thread = threading.Thread(target=from_thread)
        thread.start()
        while thread.is_alive():
            await asyncio.sleep(0.01)

    loop.run_until_complete(run())
    assert results == [None]
    assert fake_server.lines()[-1] == 'JOIN #python'


def test_call_threadsafe_coroutine(loop, fake_server):
    client = Client(loop=loop, connect_factory=fake_server)
    results = []

    def from_thread():
        future = client.call_threadsafe(
            client.connect, 'irc.example.net', 6667, 'bestnick'
        )
        results.append(future.result(timeout=5))

    async def run():
        thread = threading.Thread(target=from_thread)
        thread.start()
        while thread.is_alive():
            await asyncio.sleep(0.01)

    loop.run_until_complete(run())
    assert results == [client]
    assert client.state is ConnectionState.connected


def test_independent_clients(loop):
    first, second = FakeServer(), FakeServer()
    one = Client(loop=loop, connect_factory=first)
    two = Client(loop=loop, connect_factory=second)
    loop.run_until_complete(one.connect('irc.example.net', 6667, 'one'))
    loop.run_until_complete(two.connect('irc.example.net', 6667, 'two'))
    first.feed(':one!u@h JOIN #x')
    assert [c.name for c in one.snapshot().channels] == ['#x']
    assert two.snapshot().channels == ()
