"""
Settings injected into a client at construction.
"""

import datetime
import numbers

import tempora

from .exceptions import InvalidArgument


def to_seconds(value):
    """
    Convert a duration to seconds.

    Accepts a number of seconds, a timedelta, or a string understood by
    :func:`tempora.parse_timedelta`.

    >>> to_seconds(30)
    30.0
    >>> to_seconds(datetime.timedelta(minutes=1))
    60.0
    >>> to_seconds('3 minutes')
    180.0
    """
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    if isinstance(value, str):
        return tempora.parse_timedelta(value).total_seconds()
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return float(value)
    raise InvalidArgument("Not a duration: {value!r}".format(**locals()))


class Config:
    """
    Timeouts, keepalive cadence, reconnect limits and naming rules for a
    single connection.

    Defaults are class attributes; override any of them by keyword.

    >>> config = Config(keepalive_interval='2 minutes', max_reconnect_attempts=3)
    >>> config.keepalive_interval
    120.0
    >>> config.max_reconnect_attempts
    3
    >>> config.connect_timeout
    30

    >>> Config(reconnect_delay=5)
    Traceback (most recent call last):
    ...
    irccore.exceptions.InvalidArgument: Unknown setting: reconnect_delay
    """

    connect_timeout = 30
    "seconds to wait for the TCP connection to be established"

    keepalive_interval = 60
    "seconds between keepalive checks"

    keepalive_threshold = 180
    "seconds of silence after which a keepalive PING is sent"

    reconnect_base_delay = 5
    "reconnect attempt ``n`` waits ``n`` times this many seconds"

    max_reconnect_attempts = 5

    casefold = True
    """
    Compare nicks and channel names using the RFC 1459 case mapping.
    When False, names must match exactly.
    """

    encoding = 'utf-8'
    "encoding used for transmission"

    durations = (
        'connect_timeout',
        'keepalive_interval',
        'keepalive_threshold',
        'reconnect_base_delay',
    )

    def __init__(self, **attrs):
        for name, value in attrs.items():
            if name.startswith('_') or name == 'durations' or not hasattr(self, name):
                raise InvalidArgument("Unknown setting: {name}".format(**locals()))
            if name in self.durations:
                value = to_seconds(value)
                if value <= 0:
                    tmpl = "{name} must be positive, not {value}"
                    raise InvalidArgument(tmpl.format(**locals()))
            setattr(self, name, value)
        if self.max_reconnect_attempts < 0:
            raise InvalidArgument("max_reconnect_attempts must not be negative")

    def __repr__(self):
        overrides = ', '.join(
            '{}={!r}'.format(name, value) for name, value in sorted(vars(self).items())
        )
        return 'Config({overrides})'.format(**locals())
