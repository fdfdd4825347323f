"""
Internet Relay Chat (IRC) client core on asyncio.

The main features are:

  * One connection to one server, with an explicit state machine
    (:class:`ConnectionState`).
  * Registration (NICK/USER) as soon as the TCP connection is up.
  * Handles server PINGs transparently and sends keepalive PINGs when
    the connection has been quiet.
  * Reconnects after failures, waiting a little longer before each
    attempt, up to a fixed number of attempts.
  * Messages from the server update an in-memory session (channels,
    rosters, topics, nick) and are published as domain events.
  * Messages to the server are sent by calling methods on the client.

Everything runs on one asyncio event loop. Code running on other threads
must go through :meth:`Client.call_threadsafe`.

Notes:
  * A local disconnect() never triggers a reconnect; a dropped
    connection does.
  * Malformed lines from the server are logged and skipped.
"""

import asyncio
import concurrent.futures
import enum
import functools
import logging

import jaraco.functools
from jaraco.stream import buffer

from . import connection
from . import events
from . import message
from . import schedule
from .commands import CommandDispatcher, is_command, parse_command
from .config import Config
from .dispatcher import Dispatcher
from .exceptions import (
    AlreadyConnected,
    AlreadyConnecting,
    ConnectionTimeout,
    InvalidArgument,
    MalformedMessage,
    NotConnected,
    SocketError,
)
from .reconnect import LinearBackoff
from .session import SessionState
from .sink import EventSink

log = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    disconnected = 'disconnected'
    connecting = 'connecting'
    connected = 'connected'
    reconnecting = 'reconnecting'
    error = 'error'


def validate_address(host, port, nick):
    """
    Check connection parameters before any I/O happens.

    >>> validate_address('irc.example.net', 6667, 'bestnick')
    >>> validate_address('irc.example.net', 0, 'bestnick')
    Traceback (most recent call last):
    ...
    irccore.exceptions.InvalidArgument: Invalid port number: 0
    """
    if not isinstance(host, str) or not host.strip():
        raise InvalidArgument("Invalid server address: {host!r}".format(**locals()))
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        raise InvalidArgument("Invalid port number: {port!r}".format(**locals()))
    if (
        not isinstance(nick, str)
        or not nick
        or nick.startswith(':')
        or any(char.isspace() for char in nick)
    ):
        raise InvalidArgument("Invalid nickname: {nick!r}".format(**locals()))


class IrcProtocol(asyncio.Protocol):
    """
    asyncio Protocol for one connection attempt to the IRC server.

    Incoming bytes accumulate in ``buffer`` and complete lines are handed
    to the owning :class:`ConnectionManager`. Each instance belongs to a
    single connection epoch; once the manager moves on, whatever the
    protocol reports is ignored.
    """

    buffer_class = buffer.LenientDecodingLineBuffer

    def __init__(self, connection, loop, epoch):
        self.connection = connection
        self.loop = loop
        self.epoch = epoch
        self.transport = None
        self.lost = False
        self.lost_error = None
        self.buffer = self.buffer_class()
        self.buffer.encoding = connection.config.encoding

    def connection_made(self, transport):
        self.transport = transport

    def data_received(self, data):
        self.connection.process_data(self, data)

    def connection_lost(self, exc):
        log.debug(f"connection lost: {exc}")
        self.lost = True
        self.lost_error = exc
        self.connection.connection_lost(self, exc)


class ConnectionManager:
    """
    Owns the transport to one IRC server and its lifecycle.

    ``on_message`` is called with each :class:`irccore.message.ParsedMessage`
    in the order received; ``on_connect`` and ``on_disconnect`` are called
    with the manager when registration starts and when the connection
    goes away. State transitions and failures are published to ``sink``.
    """

    protocol_class = IrcProtocol
    transport = None
    protocol = None
    host = port = nick = None

    def __do_nothing(*args, **kwargs):
        pass

    def __init__(
        self,
        sink=None,
        config=None,
        loop=None,
        connect_factory=None,
        recon=None,
        scheduler=None,
        on_message=__do_nothing,
        on_connect=__do_nothing,
        on_disconnect=__do_nothing,
    ):
        self.sink = EventSink() if sink is None else sink
        self.config = Config() if config is None else config
        self.loop = loop
        self.connect_factory = connect_factory or connection.AioFactory()
        self.recon = recon or LinearBackoff.from_config(self.config)
        self.scheduler = scheduler
        self._on_message = on_message
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect

        self.state = ConnectionState.disconnected
        self._epoch = 0
        self._pending = None
        self._keepalive = None
        self._reconnect_timer = None
        self._last_keepalive = None

    @property
    def connected(self):
        return self.state is ConnectionState.connected

    @property
    def buffer(self):
        return self.protocol.buffer if self.protocol else None

    def _bind_loop(self):
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        if self.scheduler is None:
            self.scheduler = schedule.AsyncioScheduler(self.loop)

    def _set_state(self, new):
        old, self.state = self.state, new
        if old is not new:
            log.debug("state: %s -> %s", old.value, new.value)
            self.sink.publish(events.StateChanged(old, new))

    def _new_epoch(self):
        """
        Invalidate everything belonging to earlier connection attempts:
        late timers, transports and protocol callbacks become no-ops.
        """
        self._epoch += 1
        return self._epoch

    # save the method args to allow for easier reconnection.
    @jaraco.functools.save_method_args
    async def connect(self, host, port, nick):
        """Connect to a server and register.

        Arguments:

        * host - Server name
        * port - Port number
        * nick - The nickname, also used as user name and real name

        Bad arguments raise InvalidArgument before any I/O. Failing to
        reach the server does not raise: the state becomes ``error``, an
        Error event is published and reconnection is scheduled.

        Cancelling the call abandons the attempt: the state returns to
        ``disconnected`` and no reconnect is scheduled.

        Returns the ConnectionManager object.
        """
        log.debug("connect(host=%r, port=%r, nick=%r)", host, port, nick)
        if self.state in (ConnectionState.connecting, ConnectionState.reconnecting):
            raise AlreadyConnecting("Already connecting")
        if self.state is ConnectionState.connected:
            raise AlreadyConnected("Already connected")
        validate_address(host, port, nick)

        self._bind_loop()
        self.host = host
        self.port = port
        self.nick = nick
        self.recon.reset()
        epoch = self._new_epoch()
        task = self._attempt(epoch)
        try:
            await task
        except asyncio.CancelledError:
            if epoch == self._epoch:
                # the caller gave up; leave nothing behind
                self.disconnect("Connection attempt cancelled")
                raise
            log.debug("Connection attempt to %s:%s abandoned", host, port)
        return self

    async def reconnect(self):
        """
        Reconnect with the last arguments passed to self.connect()
        """
        try:
            saved = self._saved_connect
        except AttributeError:
            raise NotConnected("Never connected") from None
        self.disconnect("Reconnecting")
        return await self.connect(*saved.args, **saved.kwargs)

    def _attempt(self, epoch):
        self._set_state(ConnectionState.connecting)
        self.sink.publish(events.Connecting(self.host, self.port, self.nick))
        self._pending = self.loop.create_task(self._open(epoch))
        return self._pending

    async def _open(self, epoch):
        protocol = self.protocol_class(self, self.loop, epoch)
        address = (self.host, self.port)
        try:
            transport, protocol = await self.connect_factory(
                protocol, address, timeout=self.config.connect_timeout
            )
        except asyncio.TimeoutError:
            tmpl = "Timed out connecting to {}:{}"
            error = ConnectionTimeout(tmpl.format(*address))
        except OSError as exc:
            error = SocketError(exc)
            error.__cause__ = exc
        else:
            if epoch != self._epoch:
                transport.close()
                return
            if not protocol.lost:
                self._established(transport, protocol)
                return
            error = SocketError(protocol.lost_error)
        finally:
            if self._pending is asyncio.current_task():
                self._pending = None

        if epoch != self._epoch:
            return
        log.info("Couldn't connect to %s:%s: %s", self.host, self.port, error)
        self._set_state(ConnectionState.error)
        self.sink.publish(events.Error(error))
        self._schedule_reconnect()

    def _established(self, transport, protocol):
        self.transport = transport
        self.protocol = protocol
        self._last_keepalive = None

        # Log on...
        self._write('NICK', [self.nick])
        self._write('USER', [self.nick, '0', '*', self.nick])
        self._start_keepalive()
        self.recon.reset()
        self._set_state(ConnectionState.connected)
        self._on_connect(self)
        self.sink.publish(events.Connected(self.host, self.port, self.nick))

        # the server may have spoken before registration was sent
        self._process_lines(protocol)

    def process_data(self, protocol, new_data):
        """
        handles incoming data from an `IrcProtocol` connection.
        """
        if protocol.epoch != self._epoch:
            protocol.transport.close()
            return

        protocol.buffer.feed(new_data)
        if protocol is self.protocol:
            self._process_lines(protocol)

    def _process_lines(self, protocol):
        # process each non-empty line after logging all lines
        for line in protocol.buffer:
            log.debug("FROM SERVER: %s", line)
            if not line:
                continue
            try:
                msg = message.parse(line)
            except MalformedMessage as exc:
                log.warning("Skipping malformed line: %s", exc)
                continue
            try:
                self._on_message(msg)
            except Exception:
                log.exception("Error handling %r", line)
            if protocol is not self.protocol:
                # a handler hung up
                break

    def connection_lost(self, protocol, exc):
        if protocol is not self.protocol:
            return

        log.info("Connection to %s:%s lost: %s", self.host, self.port, exc)
        self._teardown()
        self._set_state(ConnectionState.disconnected)
        if exc is not None:
            error = SocketError(exc)
            error.__cause__ = exc
            self.sink.publish(events.Error(error))
            reason = str(error)
        else:
            reason = "Connection closed by server"
        self._on_disconnect(self)
        self.sink.publish(events.Disconnected(reason))
        self._schedule_reconnect()

    def _schedule_reconnect(self):
        delay = self.recon.next_delay()
        if delay is None:
            log.warning(
                "Giving up on %s:%s after %d reconnect attempts",
                self.host,
                self.port,
                self.recon.attempts,
            )
            self._set_state(ConnectionState.disconnected)
            self.sink.publish(events.ReconnectFailed(self.recon.attempts))
            return

        attempt = self.recon.attempts
        log.info(
            "Reconnecting to %s:%s in %s seconds (attempt %d)",
            self.host,
            self.port,
            delay,
            attempt,
        )
        self._set_state(ConnectionState.reconnecting)
        self.sink.publish(events.Reconnecting(attempt, delay))
        callback = functools.partial(self._reconnect, self._epoch)
        self._reconnect_timer = self.scheduler.execute_after(delay, callback)

    def _reconnect(self, epoch):
        self._reconnect_timer = None
        if epoch != self._epoch:
            return
        self._attempt(epoch)

    def _teardown(self):
        self.transport = None
        self.protocol = None
        self._stop_keepalive()

    def disconnect(self, reason=None):
        """Hang up the connection.

        Closes the transport, cancels an in-flight connection attempt,
        the keepalive timer and any scheduled reconnect. Nothing is sent
        to the server; see Dispatcher.quit for a polite goodbye.

        Arguments:

            reason -- reported in the Disconnected event.
        """
        was = self.state
        self._new_epoch()
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

        transport = self.transport
        self._teardown()
        if transport is not None:
            transport.close()
            self._on_disconnect(self)

        self._set_state(ConnectionState.disconnected)
        if was is not ConnectionState.disconnected:
            self.sink.publish(events.Disconnected(reason))

    def send(self, command, params=(), trailing=False):
        """
        Send a command to the server.

        Raises NotConnected unless registration has been sent.
        """
        if self.state is not ConnectionState.connected or self.transport is None:
            raise NotConnected("Not connected.")
        self._write(command, params, trailing)

    def _write(self, command, params=(), trailing=False):
        line = message.format(command, params, trailing=trailing)
        self.transport.write(message.prep_line(line, self.config.encoding))
        log.debug("TO SERVER: %s", line)

    def ping(self, token):
        """Send a PING command."""
        self.send('PING', [token], trailing=True)
        self._last_keepalive = self.loop.time()

    def pong(self, params):
        """Answer a PING, echoing its parameters."""
        self.send('PONG', params)

    def keepalive_ack(self):
        self._last_keepalive = self.loop.time()

    def _start_keepalive(self):
        self._stop_keepalive()
        self._keepalive = self.scheduler.execute_every(
            self.config.keepalive_interval, self.check_keepalive
        )

    def _stop_keepalive(self):
        if self._keepalive is not None:
            self._keepalive.cancel()
            self._keepalive = None

    def check_keepalive(self):
        """
        PING the server if nothing was heard from it, and nothing sent to
        it, for longer than the keepalive threshold.
        """
        if not self.connected:
            return
        last = self._last_keepalive
        quiet = last is None or self.loop.time() - last > self.config.keepalive_threshold
        if quiet:
            self.ping(self.host)


def _copy_result(future, task):
    if task.cancelled():
        future.cancel()
    elif task.exception() is not None:
        future.set_exception(task.exception())
    else:
        future.set_result(task.result())


class Client:
    """A single-server IRC client.

    Wires the connection manager, the dispatcher, the session state and
    the event sink together, and exposes the operations a front-end
    needs.

    Here is an example:

        client = irccore.client.Client()
        client.events.subscribe(irccore.events.Message, print)
        await client.connect("irc.some.where", 6667, "my_nickname")
        client.join("python")

    Instance attributes that can be used by front-ends:

        events -- The EventSink to subscribe to.

        connection -- The ConnectionManager.

        dispatcher -- The Dispatcher.

    The session itself is not exposed for writing; read it through
    snapshot().
    """

    connection_class = ConnectionManager
    dispatcher_class = Dispatcher

    def __init__(self, config=None, loop=None, connect_factory=None, scheduler=None):
        self.config = Config() if config is None else config
        self.events = EventSink()
        self._session = SessionState(casefold=self.config.casefold)
        self.dispatcher = self.dispatcher_class(self._session, self.events)
        self.connection = self.connection_class(
            self.events,
            self.config,
            loop=loop,
            connect_factory=connect_factory,
            scheduler=scheduler,
            on_message=self.dispatcher.dispatch,
            on_connect=self.dispatcher.on_connect,
            on_disconnect=self.dispatcher.on_disconnect,
        )
        self.dispatcher.connection = self.connection
        self.commands = CommandDispatcher(self)

    @property
    def state(self):
        return self.connection.state

    @property
    def nick(self):
        return self._session.nick

    def snapshot(self):
        """Return an immutable copy of the channels, rosters and nick."""
        return self._session.snapshot(self.state)

    async def connect(self, host, port, nick):
        await self.connection.connect(host, port, nick)
        return self

    def disconnect(self, message=None):
        """
        Hang up, sending QUIT first if connected. No reconnect follows.
        """
        if self.connection.connected:
            self.dispatcher.quit(message)
        else:
            self.connection.disconnect(message)

    def join(self, channel):
        self.dispatcher.join(channel)

    def part(self, channel, reason=None):
        self.dispatcher.part(channel, reason)

    def send_message(self, target, text):
        """
        Send a PRIVMSG to a channel or nick.

        The message is not echoed back as a Message event; only
        messages received from the server are.
        """
        self.dispatcher.privmsg(target, text)

    def nick_change(self, new_nick):
        self.dispatcher.nick(new_nick)

    def quit(self, reason=None):
        self.dispatcher.quit(reason)

    def send_command(self, command, args=(), target=None):
        """Carry out a slash command; see CommandDispatcher."""
        return self.commands.dispatch(command, args, target)

    def submit(self, text, target=None):
        """
        Handle a line typed by the user: a slash command, or a message
        for ``target``.
        """
        if is_command(text):
            command, args = parse_command(text)
            return self.send_command(command, args, target)
        if not target:
            return self.commands.notice("No channel or nick to send to", target)
        self.send_message(target, text)

    def call_threadsafe(self, func, *args, **kwargs):
        """
        Run ``func(*args, **kwargs)`` on the client's event loop and return
        a :class:`concurrent.futures.Future` for its result.

        Calls are executed in the order they were made. If ``func``
        returns a coroutine, the future resolves when it completes.
        """
        loop = self.connection.loop
        if loop is None:
            raise NotConnected("No event loop bound yet; connect first")
        future = concurrent.futures.Future()

        def call():
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                future.set_exception(exc)
                return
            if asyncio.iscoroutine(result):
                task = loop.create_task(result)
                task.add_done_callback(functools.partial(_copy_result, future))
            else:
                future.set_result(result)

        loop.call_soon_threadsafe(call)
        return future
