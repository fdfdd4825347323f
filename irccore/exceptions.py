"""
Exceptions raised by the IRC client core.
"""


class IRCError(Exception):
    "An IRC exception"


class InvalidArgument(IRCError, ValueError):
    "An operation was invoked with an unusable argument"


class InvalidCharacters(InvalidArgument):
    "Invalid characters were encountered in the message"


class MessageTooLong(InvalidArgument):
    "Message is too long"


class MalformedMessage(IRCError, ValueError):
    """
    A line received from the server could not be parsed.

    >>> err = MalformedMessage('missing command', ':prefix')
    >>> err.line
    ':prefix'
    >>> str(err)
    "missing command: ':prefix'"
    """

    def __init__(self, reason, line=None):
        super().__init__(reason, line)
        self.reason = reason
        self.line = line

    def __str__(self):
        return '{self.reason}: {self.line!r}'.format(**locals())


class ServerConnectionError(IRCError):
    pass


class AlreadyConnecting(ServerConnectionError):
    "A connection attempt is already in progress"


class AlreadyConnected(ServerConnectionError):
    "The client is already connected"


class NotConnected(ServerConnectionError):
    "Not connected."


class ConnectionTimeout(ServerConnectionError):
    "The server did not accept the connection in time"


class SocketError(ServerConnectionError):
    """
    The transport failed.

    The underlying error is available as ``error`` (and as the
    ``__cause__`` when raised from it).

    >>> err = SocketError(ConnectionRefusedError(111, 'Connection refused'))
    >>> str(err)
    'Connection refused'
    >>> SocketError(None).error
    """

    def __init__(self, error):
        super().__init__(error)
        self.error = error

    def __str__(self):
        if isinstance(self.error, OSError) and self.error.strerror:
            return self.error.strerror
        return str(self.error or 'Connection reset by peer')
