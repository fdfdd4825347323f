import abc

from .exceptions import InvalidArgument


class ReconnectStrategy(metaclass=abc.ABCMeta):
    """
    An abstract base class describing the interface used by
    ConnectionManager to decide whether and when to reconnect after a
    failed or dropped connection.
    """

    attempts = 0
    "attempts made since the last successful connection"

    @abc.abstractmethod
    def next_delay(self):
        """
        Count an attempt and return the seconds to wait before it, or
        None if no further attempts should be made.
        """

    def reset(self):
        "Invoked after a successful connection."
        self.attempts = 0


class LinearBackoff(ReconnectStrategy):
    """
    A ReconnectStrategy waiting ``base_delay * attempt`` seconds, giving
    up after ``max_attempts``.

    >>> recon = LinearBackoff(base_delay=5, max_attempts=3)
    >>> [recon.next_delay() for n in range(4)]
    [5, 10, 15, None]
    >>> recon.attempts
    3
    >>> recon.reset()
    >>> recon.next_delay()
    5
    """

    base_delay = 5
    max_attempts = 5

    def __init__(self, **attrs):
        vars(self).update(attrs)
        if not self.base_delay > 0:
            raise InvalidArgument("base_delay must be positive")
        if self.max_attempts < 0:
            raise InvalidArgument("max_attempts must not be negative")
        self.attempts = 0

    @classmethod
    def from_config(cls, config):
        return cls(
            base_delay=config.reconnect_base_delay,
            max_attempts=config.max_reconnect_attempts,
        )

    @property
    def exhausted(self):
        return self.attempts >= self.max_attempts

    def next_delay(self):
        if self.exhausted:
            return None
        self.attempts += 1
        return self.base_delay * self.attempts
