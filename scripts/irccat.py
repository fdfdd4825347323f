#! /usr/bin/env python
#
# Example program using irccore.client.
#
# Sends each line read from stdin to a channel or nick, and prints what
# arrives from the server. An empty line quits.
#
# This program is free without restrictions; do anything you like with
# it.

import argparse
import asyncio
import sys

import jaraco.logging

import irccore.client
from irccore import events
from irccore.config import Config
from irccore.exceptions import IRCError
from irccore.message import is_channel


def get_args():
    parser = argparse.ArgumentParser()
    parser.add_argument('server')
    parser.add_argument('nickname')
    parser.add_argument('target', help="a nickname or channel")
    parser.add_argument('-p', '--port', default=6667, type=int)
    parser.add_argument(
        '--max-reconnects',
        default=Config.max_reconnect_attempts,
        type=int,
        help="give up after this many reconnect attempts",
    )
    jaraco.logging.add_arguments(parser)
    return parser.parse_args()


def show(event):
    if isinstance(event, events.Message):
        print('<{event.nick}:{event.target}> {event.content}'.format(**locals()))
    elif isinstance(event, events.SystemNotice):
        print('*** ' + event.content)
    elif isinstance(event, (events.Error, events.Reconnecting, events.ReconnectFailed)):
        print('!!! {event}'.format(**locals()), file=sys.stderr)


async def relay_stdin(client, target):
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        line = line.strip()
        if not line:
            break
        try:
            client.submit(line, target)
        except IRCError as exc:
            print("!!! {}".format(exc), file=sys.stderr)
    client.disconnect("Using irccore")


async def run(args):
    client = irccore.client.Client(Config(max_reconnect_attempts=args.max_reconnects))
    done = asyncio.Event()

    def on_welcome(event):
        # the first server notice follows registration
        if is_channel(args.target) and not client.snapshot().channels:
            client.join(args.target)
        client.events.unsubscribe(events.SystemNotice, on_welcome)

    client.events.subscribe(events.DomainEvent, show)
    client.events.subscribe(events.SystemNotice, on_welcome, priority=-1)
    client.events.subscribe(events.ReconnectFailed, lambda event: done.set())

    await client.connect(args.server, args.port, args.nickname)
    reader = asyncio.ensure_future(relay_stdin(client, args.target))
    gave_up = asyncio.ensure_future(done.wait())
    finished, pending = await asyncio.wait(
        [reader, gave_up], return_when=asyncio.FIRST_COMPLETED
    )
    for task in pending:
        task.cancel()
    if gave_up in finished:
        raise SystemExit(1)


def main():
    args = get_args()
    jaraco.logging.setup(args)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    main()
