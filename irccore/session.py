"""
In-memory state for one connection: the channels the client knows about,
who is in them, and the client's own nick.

Only :class:`irccore.dispatcher.Dispatcher` mutates these objects; other
parties receive immutable views from :meth:`SessionState.snapshot`.
"""

import collections

from .names import equal, name_dict

UserView = collections.namedtuple('UserView', 'nick modes')
ChannelView = collections.namedtuple('ChannelView', 'name topic users')
Snapshot = collections.namedtuple('Snapshot', 'state nick channels')


class User:
    """
    A member of a channel roster.

    >>> User('alice', {'op'})
    User('alice', modes=['op'])
    """

    def __init__(self, nick, modes=()):
        self.nick = nick
        self.modes = set(modes)

    def __repr__(self):
        return '{}({!r}, modes={!r})'.format(
            type(self).__name__, self.nick, sorted(self.modes)
        )

    def view(self):
        return UserView(self.nick, frozenset(self.modes))


class Channel:
    """
    A class for keeping information about an IRC channel.

    >>> ch = Channel('#test')
    >>> ch.add_user('Alice', {'op'})
    >>> ch.has_user('alice')
    True
    >>> ch.is_oper('ALICE')
    True
    """

    def __init__(self, name, casefold=True):
        self.name = name
        self.topic = None
        self.casefold = casefold
        self.users = name_dict(casefold)

    def __repr__(self):
        return '<Channel {self.name} with {count} users>'.format(
            count=len(self.users), **locals()
        )

    def nicks(self):
        """Returns the nicks of the channel's users, in order of arrival."""
        return [user.nick for user in self.users.values()]

    def has_user(self, nick):
        """Check whether the channel has a user."""
        return nick in self.users

    def get_user(self, nick):
        return self.users.get(nick)

    def is_oper(self, nick):
        """Check whether a user has operator status in the channel."""
        return self.has_user(nick) and 'op' in self.users[nick].modes

    def is_voiced(self, nick):
        """Check whether a user has voice mode set in the channel."""
        return self.has_user(nick) and 'voice' in self.users[nick].modes

    def add_user(self, nick, modes=()):
        """Insert a user, replacing any record under the same nick."""
        self.users.pop(nick, None)
        self.users[nick] = User(nick, modes)

    def remove_user(self, nick):
        """Remove a user. Returns the removed record or None."""
        return self.users.pop(nick, None)

    def change_nick(self, before, after):
        """
        Re-key a user under a new nick, keeping its modes.

        >>> ch = Channel('#test')
        >>> ch.add_user('bob', {'voice'})
        >>> ch.change_nick('bob', 'robert')
        >>> ch.get_user('robert')
        User('robert', modes=['voice'])
        >>> ch.has_user('bob')
        False
        """
        user = self.users.pop(before)
        user.nick = after
        self.users[after] = user

    def view(self):
        users = tuple(user.view() for user in self.users.values())
        return ChannelView(self.name, self.topic, users)


class SessionState:
    """
    Channels keyed by name, plus the nick currently in use.

    >>> state = SessionState(nick='me')
    >>> ch = state.ensure_channel('#Python')
    >>> state.ensure_channel('#python') is ch
    True
    >>> state.channel_names()
    ['#Python']
    """

    def __init__(self, nick='', casefold=True):
        self.casefold = casefold
        self.nick = nick
        self.channels = name_dict(casefold)

    def reset(self, nick=''):
        "Forget everything from a previous connection."
        self.nick = nick
        self.channels = name_dict(self.casefold)

    def is_me(self, nick):
        return equal(nick, self.nick, self.casefold)

    def get_channel(self, name):
        return self.channels.get(name)

    def ensure_channel(self, name):
        """Return the channel by that name, creating it if necessary."""
        try:
            return self.channels[name]
        except KeyError:
            pass
        channel = self.channels[name] = Channel(name, self.casefold)
        return channel

    def remove_channel(self, name):
        return self.channels.pop(name, None)

    def channel_names(self):
        return [channel.name for channel in self.channels.values()]

    def channels_with(self, nick):
        """Channels whose roster includes ``nick``."""
        return [ch for ch in self.channels.values() if ch.has_user(nick)]

    def snapshot(self, state=None):
        """
        Return an immutable copy of the session.

        >>> state = SessionState(nick='me')
        >>> state.ensure_channel('#x').add_user('alice', {'op'})
        >>> snap = state.snapshot()
        >>> snap.nick
        'me'
        >>> snap.channels[0].users
        (UserView(nick='alice', modes=frozenset({'op'})),)
        """
        channels = tuple(channel.view() for channel in self.channels.values())
        return Snapshot(state, self.nick, channels)
