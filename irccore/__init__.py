"""
Single-connection IRC client core.

The package is organized in layers: :mod:`irccore.message` translates
between wire lines and structured messages, :mod:`irccore.client` owns the
socket, :mod:`irccore.dispatcher` turns messages into session updates and
domain events, which front-ends observe through :mod:`irccore.sink`.
"""

import contextlib
from importlib import metadata


def _get_version():
    with contextlib.suppress(Exception):
        return metadata.version('irccore')
    return 'unknown'
