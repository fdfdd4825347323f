"""
Slash commands typed by a user, as a front-end would forward them.
"""

import logging

from . import events
from .exceptions import InvalidArgument
from .message import is_channel

log = logging.getLogger(__name__)


def is_command(text):
    """
    >>> is_command('/join #python')
    True
    >>> is_command('hello /join')
    False
    """
    return text.strip().startswith('/')


def parse_command(text):
    """
    Split a slash command into its lowercased name and arguments.

    >>> parse_command('/JOIN #python')
    ('join', ['#python'])
    >>> parse_command('/quit  see you later')
    ('quit', ['see', 'you', 'later'])
    >>> parse_command('hello')
    Traceback (most recent call last):
    ...
    irccore.exceptions.InvalidArgument: Not a command: 'hello'
    """
    if not is_command(text):
        raise InvalidArgument("Not a command: {text!r}".format(**locals()))
    words = text.strip()[1:].split()
    if not words:
        raise InvalidArgument("Empty command")
    command, *args = words
    return command.lower(), args


class CommandDispatcher:
    """
    Route a slash command to the client method that carries it out.

    Each command is handled by a ``do_<name>`` method taking the argument
    list and the target the user is looking at (used as the default
    channel and as the destination of any notice produced). Unknown
    commands and missing arguments are reported as
    :class:`irccore.events.SystemNotice`; errors from the connection,
    such as :class:`irccore.exceptions.NotConnected`, propagate.
    """

    help_text = (
        "Available commands: /join #channel, /part [#channel] [reason], "
        "/msg target message, /nick newname, /list, /names [#channel], "
        "/quit [reason], /help"
    )

    def __init__(self, client):
        self.client = client

    def dispatch(self, command, args=(), target=None):
        command = command.lstrip('/').lower()
        log.debug("command /%s %s (target %s)", command, args, target)
        handler = getattr(self, 'do_' + command, None)
        if handler is None:
            tmpl = "Unknown command: /{command}. Type /help for available commands."
            return self.notice(tmpl.format(**locals()), target)
        return handler(list(args), target)

    def notice(self, content, target=None):
        self.client.events.publish(events.SystemNotice(content, target))

    def usage(self, text, target):
        self.notice("Usage: " + text, target)

    def do_help(self, args, target):
        self.notice(self.help_text, target)

    def do_join(self, args, target):
        if not args:
            return self.usage("/join #channel", target)
        self.client.join(args[0])

    def do_part(self, args, target):
        if args and is_channel(args[0]):
            channel, args = args[0], args[1:]
        else:
            channel = target
        if not is_channel(channel):
            return self.usage("/part [#channel] [reason]", target)
        self.client.part(channel, ' '.join(args) or None)

    def do_msg(self, args, target):
        if len(args) < 2:
            return self.usage("/msg target message", target)
        self.client.send_message(args[0], ' '.join(args[1:]))

    def do_nick(self, args, target):
        if not args:
            return self.usage("/nick newname", target)
        self.client.nick_change(args[0])

    def do_quit(self, args, target):
        self.client.quit(' '.join(args) or None)

    def do_list(self, args, target):
        self.client.dispatcher.list(args or None)

    def do_names(self, args, target):
        channels = args or ([target] if is_channel(target) else None)
        self.client.dispatcher.names(channels)
