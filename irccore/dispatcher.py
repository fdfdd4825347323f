"""
Turn messages from the server into session updates and domain events,
and user intents into commands for the server.

The dispatcher performs no I/O of its own: replies (PONG) and outbound
intents go through the connection it was given.
"""

import functools
import logging

from more_itertools import always_iterable

from . import events
from .events import Code, MessageKind
from .exceptions import InvalidArgument
from .features import FeatureSet
from .message import is_channel

log = logging.getLogger(__name__)


def requires(count):
    "Ignore messages carrying fewer than ``count`` parameters"

    def decorate(handler):
        @functools.wraps(handler)
        def wrapper(self, msg):
            if len(msg.params) < count:
                log.warning("Ignoring %s with too few parameters: %r", msg.command, msg.raw)
                return
            return handler(self, msg)

        return wrapper

    return decorate


class Dispatcher:
    """
    Apply each message from the server to the session and publish the
    resulting events.

    Messages are routed to ``_on_<name>`` methods, where ``name`` is the
    lowercased command or, for numeric replies, the name from
    :mod:`irccore.events` (``353`` is ``namreply``). Commands without a
    handler are ignored.
    """

    def __init__(self, session, sink, connection=None):
        self.session = session
        self.sink = sink
        self.connection = connection
        self.features = FeatureSet()

    def on_connect(self, connection):
        self.session.reset(connection.nick)
        self.features = FeatureSet()

    def on_disconnect(self, connection):
        self.session.reset(self.session.nick)

    def dispatch(self, msg):
        command = Code.lookup(msg.command)
        log.debug(
            "command: %s, source: %s, params: %s", command, msg.prefix, msg.params
        )
        handler = getattr(self, '_on_' + command, None)
        if handler is None:
            log.debug("No handler for %s", msg.command)
            return
        handler(msg)

    def _publish(self, event):
        self.sink.publish(event)

    def _channel_name(self, name):
        channel = self.session.get_channel(name)
        return channel.name if channel else name

    # connection upkeep

    def _on_ping(self, msg):
        self.connection.pong(msg.params)

    def _on_pong(self, msg):
        self.connection.keepalive_ack()

    def _on_error(self, msg):
        self._publish(events.SystemNotice(' '.join(msg.params)))

    # registration replies (001 - 005)

    def _server_info(self, msg):
        self._publish(events.SystemNotice(' '.join(msg.params[1:])))

    def _on_welcome(self, msg):
        # The server tells us which nick it registered.
        if msg.params:
            self.session.nick = msg.params[0]
        self._server_info(msg)

    _on_yourhost = _on_created = _on_myinfo = _server_info

    def _on_featurelist(self, msg):
        self.features.load(msg.params)
        self._server_info(msg)

    # membership

    @requires(1)
    def _on_join(self, msg):
        nick = msg.nick
        channel = self.session.ensure_channel(msg.params[0])
        channel.add_user(nick)
        self._publish(events.Join(nick, channel.name))

    @requires(1)
    def _on_part(self, msg):
        nick = msg.nick
        name = self._channel_name(msg.params[0])
        channel = self.session.get_channel(name)
        if channel is not None:
            channel.remove_user(nick)
        if self.session.is_me(nick):
            self.session.remove_channel(name)
        self._publish(events.Part(nick, name, msg.param(1)))

    @requires(2)
    def _on_kick(self, msg):
        name = self._channel_name(msg.params[0])
        nick = msg.params[1]
        channel = self.session.get_channel(name)
        if channel is not None:
            channel.remove_user(nick)
        if self.session.is_me(nick):
            self.session.remove_channel(name)
        self._publish(events.Kick(nick, name, msg.nick, msg.param(2)))

    def _on_quit(self, msg):
        nick = msg.nick
        affected = []
        for channel in self.session.channels_with(nick):
            channel.remove_user(nick)
            affected.append(channel.name)
        self._publish(events.Quit(nick, msg.param(0), tuple(affected)))

    @requires(1)
    def _on_nick(self, msg):
        before = msg.nick
        after = msg.params[0]
        if self.session.is_me(before):
            self.session.nick = after
        for channel in self.session.channels_with(before):
            channel.change_nick(before, after)
        self._publish(events.NickChanged(before, after))

    @requires(4)
    def _on_namreply(self, msg):
        """
        params[1] == "@" for secret channels,
                     "*" for private channels,
                     "=" for others (public channels)
        params[2] == channel
        params[3] == nick list
        """
        name = msg.params[2]
        if name == '*':
            # User is not in any visible channel
            # http://tools.ietf.org/html/rfc2812#section-3.2.5
            return

        channel = self.session.ensure_channel(name)
        for entry in msg.params[3].split():
            nick, modes = self.features.split_prefixes(entry)
            if nick:
                channel.add_user(nick, modes)
        self._publish(events.NamesUpdated(channel.name, channel.view().users))

    def _on_endofnames(self, msg):
        "Each 353 is applied as it arrives, so there is nothing left to do."

    # topics

    @requires(3)
    def _on_currenttopic(self, msg):
        channel = self.session.ensure_channel(msg.params[1])
        channel.topic = msg.params[2]
        self._publish(events.TopicChanged(channel.name, channel.topic))

    @requires(2)
    def _on_topic(self, msg):
        channel = self.session.ensure_channel(msg.params[0])
        channel.topic = msg.params[1] or None
        self._publish(events.TopicChanged(channel.name, channel.topic, msg.nick))

    # messages

    @requires(2)
    def _on_privmsg(self, msg):
        target, content = msg.params[:2]
        if is_channel(target):
            target = self.session.ensure_channel(target).name
        self._publish(events.Message(msg.nick, target, content, MessageKind.message))

    @requires(2)
    def _on_notice(self, msg):
        target, content = msg.params[:2]
        self._publish(
            events.Message(
                msg.nick, self._channel_name(target), content, MessageKind.notice
            )
        )

    # outbound intents

    def join(self, channel):
        """Send a JOIN command, adding the ``#`` prefix if it's missing."""
        channel = channel.strip()
        if not channel:
            raise InvalidArgument("Channel name required")
        if not is_channel(channel):
            channel = '#' + channel
        self.connection.send('JOIN', [channel])

    def part(self, channels, reason=None):
        """Send a PART command."""
        params = self._channel_list(channels)
        if not params:
            raise InvalidArgument("Channel name required")
        if reason:
            params.append(reason)
        self.connection.send('PART', params, trailing=bool(reason))

    def privmsg(self, target, text):
        """Send a PRIVMSG command."""
        self.connection.send('PRIVMSG', [target, text], trailing=True)

    def notice(self, target, text):
        """Send a NOTICE command."""
        self.connection.send('NOTICE', [target, text], trailing=True)

    def nick(self, new_nick):
        """Send a NICK command."""
        if not new_nick or any(char.isspace() for char in new_nick):
            raise InvalidArgument("Invalid nickname: {new_nick!r}".format(**locals()))
        self.connection.send('NICK', [new_nick])

    def quit(self, reason=None):
        """
        Send a QUIT command and hang up.

        The connection is torn down locally, so no reconnect follows.
        """
        params = [reason] if reason else []
        self.connection.send('QUIT', params, trailing=bool(reason))
        self.connection.disconnect(reason)

    def list(self, channels=None):
        """Send a LIST command."""
        self.connection.send('LIST', self._channel_list(channels))

    def names(self, channels=None):
        """Send a NAMES command."""
        self.connection.send('NAMES', self._channel_list(channels))

    @staticmethod
    def _channel_list(channels):
        joined = ','.join(always_iterable(channels))
        return [joined] if joined else []
