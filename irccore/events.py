"""
Names for the commands a server sends, and the domain events the client
publishes in response.
"""

import collections
import enum
import itertools
import sys

from jaraco.text import drop_comment, yield_lines

if sys.version_info >= (3, 12):
    from importlib.resources import files
else:
    from importlib_resources import files


class Code(str):
    def __new__(cls, code, name):
        return super().__new__(cls, name)

    def __init__(self, code, name):
        self.code = code

    def __int__(self):
        return int(self.code)

    @staticmethod
    def lookup(command) -> 'Code':
        """
        Lookup a command by numeric or by name.

        >>> Code.lookup('002')
        'yourhost'
        >>> Code.lookup('002').code
        '002'
        >>> int(Code.lookup('353'))
        353
        >>> Code.lookup('namreply').code
        '353'

        Named commands are matched without regard to case.

        >>> Code.lookup('PRIVMSG')
        'privmsg'

        If a command is supplied that's an unrecognized name or code,
        a Code object is still returned.

        >>> fallback = Code.lookup('999')
        >>> fallback
        '999'
        >>> int(fallback)
        999
        """
        fallback = Code(command.lower(), command.lower())
        return numeric.get(command, _by_name.get(command.lower(), fallback))


def _load_codes():
    text = files('irccore').joinpath('codes.txt').read_text(encoding='utf-8')
    return itertools.starmap(Code, map(str.split, map(drop_comment, yield_lines(text))))


numeric = {code.code: code for code in _load_codes()}

_by_name = {v: v for v in numeric.values()}


class MessageKind(enum.Enum):
    message = 'message'
    notice = 'notice'


class DomainEvent(tuple):
    """
    Base for everything published to an :class:`irccore.sink.EventSink`.

    Concrete events are immutable named tuples; subscribe to
    ``DomainEvent`` itself to receive all of them.

    Events of different types never compare equal, even when their
    fields do.

    >>> Join('alice', '#x') == Join('alice', '#x')
    True
    >>> Connected('h', 6667, 'n') == Connecting('h', 6667, 'n')
    False
    >>> Part('alice', '#x')
    Part(nick='alice', channel='#x', reason=None)
    """

    __slots__ = ()

    def __eq__(self, other):
        return type(self) is type(other) and tuple.__eq__(self, other)

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((type(self).__name__, tuple(self)))

    @classmethod
    def define(cls, name, fields, defaults=()):
        base = collections.namedtuple(name, fields, defaults=defaults)
        return type(name, (base, cls), {'__slots__': ()})


Connecting = DomainEvent.define('Connecting', 'host port nick')
Connected = DomainEvent.define('Connected', 'host port nick')
Disconnected = DomainEvent.define('Disconnected', 'reason', defaults=(None,))
Error = DomainEvent.define('Error', 'cause')
Reconnecting = DomainEvent.define('Reconnecting', 'attempt delay')
ReconnectFailed = DomainEvent.define('ReconnectFailed', 'attempts')
StateChanged = DomainEvent.define('StateChanged', 'old new')

Message = DomainEvent.define(
    'Message', 'nick target content kind', defaults=(MessageKind.message,)
)
Join = DomainEvent.define('Join', 'nick channel')
Part = DomainEvent.define('Part', 'nick channel reason', defaults=(None,))
Kick = DomainEvent.define('Kick', 'nick channel by reason', defaults=(None,))
Quit = DomainEvent.define(
    'Quit', 'nick reason affected_channels', defaults=(None, ())
)
NamesUpdated = DomainEvent.define('NamesUpdated', 'channel users')
TopicChanged = DomainEvent.define(
    'TopicChanged', 'channel topic nick', defaults=(None,)
)
NickChanged = DomainEvent.define('NickChanged', 'old_nick new_nick')
SystemNotice = DomainEvent.define(
    'SystemNotice', 'content target', defaults=(None,)
)

connection_events = [
    Connecting,
    Connected,
    Disconnected,
    Error,
    Reconnecting,
    ReconnectFailed,
    StateChanged,
]

protocol_events = [
    Message,
    Join,
    Part,
    Kick,
    Quit,
    NamesUpdated,
    TopicChanged,
    NickChanged,
    SystemNotice,
]

all = connection_events + protocol_events
