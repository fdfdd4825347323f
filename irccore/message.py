"""
Translation between IRC wire lines and structured messages.

Everything in this module is pure: no state, no I/O. Framing (splitting
the byte stream into lines) is the connection's job; :func:`parse`
receives a single line with its terminator already removed.
"""

import collections

from .exceptions import (
    InvalidArgument,
    InvalidCharacters,
    MalformedMessage,
    MessageTooLong,
)

MAX_PARAMS = 15

MAX_LINE_BYTES = 512
"RFC 1459 limit for a line, including the trailing CR LF"

SYSTEM_NICK = 'system'
"Nick reported for messages that carry no prefix"

CHANNEL_PREFIXES = '#&'


class ParsedMessage(
    collections.namedtuple('ParsedMessage', 'prefix command params raw')
):
    """
    A line received from the server.

    >>> msg = ParsedMessage.parse(':nick!u@h PRIVMSG #test :Hello world')
    >>> msg.prefix, msg.command, msg.params
    ('nick!u@h', 'PRIVMSG', ['#test', 'Hello world'])
    >>> msg.nick
    'nick'
    """

    @classmethod
    def parse(cls, line):
        return parse(line)

    @property
    def source(self):
        return NickMask.from_group(self.prefix)

    @property
    def nick(self):
        return extract_nick(self.prefix)

    def param(self, index, default=None):
        """
        Return the parameter at ``index`` or ``default`` if the message is
        too short.

        >>> msg = parse('PART #x')
        >>> msg.param(0)
        '#x'
        >>> msg.param(1, 'gone')
        'gone'
        """
        try:
            return self.params[index]
        except IndexError:
            return default


class OutboundCommand(
    collections.namedtuple('OutboundCommand', 'command params trailing')
):
    """
    A command to be sent to the server.

    >>> str(OutboundCommand('JOIN', ['#test']))
    'JOIN #test'
    >>> str(OutboundCommand('QUIT', ['bye'], trailing=True))
    'QUIT :bye'
    """

    def __new__(cls, command, params=(), trailing=False):
        return super().__new__(cls, command, list(params), trailing)

    def __str__(self):
        return format(self.command, self.params, trailing=self.trailing)


class Arguments(list):
    @staticmethod
    def from_group(group):
        """
        Construct arguments from the text following the command

        >>> Arguments.from_group('foo')
        ['foo']

        >>> Arguments.from_group(None)
        []

        >>> Arguments.from_group('')
        []

        >>> Arguments.from_group('foo bar')
        ['foo', 'bar']

        >>> Arguments.from_group('foo bar :baz')
        ['foo', 'bar', 'baz']

        >>> Arguments.from_group('foo bar :baz bing')
        ['foo', 'bar', 'baz bing']

        >>> Arguments.from_group(':only trailing: text')
        ['only trailing: text']

        >>> Arguments.from_group('foo :')
        ['foo', '']

        >>> Arguments.from_group('foo  bar')
        ['foo', 'bar']
        """
        if not group:
            return []

        if group.startswith(':'):
            main, sep, ext = '', ':', group[1:]
        else:
            main, sep, ext = group.partition(' :')
        arguments = main.split(' ')
        arguments = list(filter(None, arguments))
        if sep:
            arguments.append(ext)

        return arguments


def parse(line):
    """
    Parse one line received from the server.

    >>> parse(':s 353 me = #x :@alice +bob carol').params
    ['me', '=', '#x', '@alice +bob carol']
    >>> parse('PING :irc.example.net')
    ParsedMessage(prefix=None, command='PING', params=['irc.example.net'], raw='PING :irc.example.net')

    Lines without a command are rejected.

    >>> parse('')
    Traceback (most recent call last):
    ...
    irccore.exceptions.MalformedMessage: empty line: ''
    >>> parse(':lonely.prefix')
    Traceback (most recent call last):
    ...
    irccore.exceptions.MalformedMessage: missing space after prefix: ':lonely.prefix'
    """
    if not line:
        raise MalformedMessage("empty line", line)

    prefix = None
    remaining = line
    if remaining.startswith(':'):
        prefix, sep, remaining = remaining[1:].partition(' ')
        if not sep:
            raise MalformedMessage("missing space after prefix", line)
        if not prefix:
            raise MalformedMessage("empty prefix", line)

    command, sep, remaining = remaining.lstrip(' ').partition(' ')
    if not command:
        raise MalformedMessage("missing command", line)

    params = Arguments.from_group(remaining.lstrip(' '))
    if len(params) > MAX_PARAMS:
        raise MalformedMessage("too many parameters", line)

    return ParsedMessage(prefix, command, params, line)


def _check_characters(param):
    if any(char in param for char in '\r\n\0'):
        msg = "Carriage returns, newlines and NUL are not allowed"
        raise InvalidCharacters(msg)


def _needs_colon(param):
    return ' ' in param or ':' in param


def format(command, params=(), trailing=False):
    """
    Format a command and its parameters as a wire line (without CR LF).

    The last parameter is sent as a trailing parameter when it contains a
    space or a colon, when it is empty, or when ``trailing`` is set.
    Empty middle parameters are dropped.

    >>> format('PRIVMSG', ['#test', 'Hello world'])
    'PRIVMSG #test :Hello world'
    >>> format('JOIN', ['#test'])
    'JOIN #test'
    >>> format('QUIT', ['bye'], trailing=True)
    'QUIT :bye'
    >>> format('PRIVMSG', ['#test', ''])
    'PRIVMSG #test :'
    >>> format('USER', ['nick', '0', '*', 'nick'])
    'USER nick 0 * nick'

    Middle parameters can't carry spaces.

    >>> format('PRIVMSG', ['#a #b', 'hi'])
    Traceback (most recent call last):
    ...
    irccore.exceptions.InvalidArgument: Only the last parameter may contain spaces or start with a colon: '#a #b'
    """
    if not command or ' ' in command:
        raise InvalidArgument("Invalid command: {command!r}".format(**locals()))
    _check_characters(command)

    params = list(params)
    items = [command]
    for index, param in enumerate(params):
        _check_characters(param)
        last = index == len(params) - 1
        if last and (trailing or not param or _needs_colon(param)):
            items.append(':' + param)
        elif not param:
            continue
        elif ' ' in param or param.startswith(':'):
            tmpl = (
                "Only the last parameter may contain spaces "
                "or start with a colon: {param!r}"
            )
            raise InvalidArgument(tmpl.format(**locals()))
        else:
            items.append(param)
    return ' '.join(items)


def prep_line(string, encoding='utf-8'):
    """
    Encode a formatted line for transmission, appending CR LF.

    >>> prep_line('NICK bestnick')
    b'NICK bestnick\\r\\n'
    >>> prep_line('PRIVMSG #x :' + 'a' * 600)
    Traceback (most recent call last):
    ...
    irccore.exceptions.MessageTooLong: Messages limited to 512 bytes including CR/LF
    """
    # The string should not contain any carriage return other than the
    # one added here.
    _check_characters(string)
    bytes = string.encode(encoding) + b'\r\n'
    # According to the RFC http://tools.ietf.org/html/rfc2812#page-6,
    # clients should not transmit more than 512 bytes.
    if len(bytes) > MAX_LINE_BYTES:
        msg = "Messages limited to 512 bytes including CR/LF"
        raise MessageTooLong(msg)
    return bytes


def is_channel(string):
    """Check if a string is a channel name.

    >>> is_channel('#python')
    True
    >>> is_channel('&local')
    True
    >>> is_channel('alice')
    False
    >>> is_channel('')
    False
    """
    return bool(string) and string[0] in CHANNEL_PREFIXES


def extract_nick(prefix):
    """
    Return the nick from a message prefix.

    >>> extract_nick('alice!user@example.com')
    'alice'
    >>> extract_nick('irc.example.net')
    'irc.example.net'
    >>> extract_nick(None)
    'system'
    """
    if not prefix:
        return SYSTEM_NICK
    return NickMask(prefix).nick


class NickMask(str):
    """
    A nickmask (the prefix of a message)

    >>> nm = NickMask('pinky!username@example.com')
    >>> nm.nick
    'pinky'

    >>> nm.host
    'example.com'

    >>> nm.user
    'username'

    >>> isinstance(nm, str)
    True

    Some messages omit the userhost. In that case, None is returned.

    >>> nm = NickMask('irc.server.net')
    >>> nm.nick
    'irc.server.net'
    >>> nm.userhost
    >>> nm.host
    >>> nm.user
    """

    @property
    def nick(self):
        nick, sep, userhost = self.partition("!")
        return nick

    @property
    def userhost(self):
        nick, sep, userhost = self.partition("!")
        return userhost or None

    @property
    def host(self):
        nick, sep, userhost = self.partition("!")
        user, sep, host = userhost.partition('@')
        return host or None

    @property
    def user(self):
        nick, sep, userhost = self.partition("!")
        user, sep, host = userhost.partition('@')
        return user or None

    @classmethod
    def from_group(cls, group):
        return cls(group) if group else None
