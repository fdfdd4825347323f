"""
The boundary through which front-ends observe the client.

Handlers are registered per event class (or for :class:`DomainEvent`, to
see everything) and run on the event loop in priority order. Front-ends
that would rather pull events can :meth:`EventSink.listen` for a queue
that receives every event in publish order.
"""

import asyncio
import bisect
import collections
import logging

from .events import DomainEvent

log = logging.getLogger(__name__)

NO_MORE = "NO MORE"
"Returned by a handler to stop lower-priority handlers from running"


class PrioritizedHandler(collections.namedtuple('Base', ('priority', 'callback'))):
    def __lt__(self, other):
        "when sorting prioritized handlers, only use the priority"
        return self.priority < other.priority


class EventSink:
    """
    Fan out domain events to subscribers.

    >>> from irccore.events import Join, Part
    >>> sink = EventSink()
    >>> seen = []
    >>> sink.subscribe(Join, seen.append)
    >>> sink.publish(Join('alice', '#x'))
    >>> sink.publish(Part('alice', '#x'))
    >>> seen
    [Join(nick='alice', channel='#x')]
    """

    def __init__(self):
        self.handlers = {}
        self.queues = []

    def subscribe(self, event_type, handler, priority=0):
        """Adds a handler function for a specific event type.

        Arguments:

            event_type -- A DomainEvent subclass, or DomainEvent itself
                          to receive every event.

            handler -- Callback taking the event.

            priority -- A number (the lower number, the higher priority).

        If a handler function returns NO_MORE, no more handlers will be
        called for that event.
        """
        if not (isinstance(event_type, type) and issubclass(event_type, DomainEvent)):
            raise TypeError("Not an event type: {event_type!r}".format(**locals()))
        handler = PrioritizedHandler(priority, handler)
        event_handlers = self.handlers.setdefault(event_type, [])
        bisect.insort(event_handlers, handler)

    def unsubscribe(self, event_type, handler):
        """Removes a handler function.

        Returns True if the handler was registered.
        """
        event_handlers = self.handlers.get(event_type, [])
        matching = [h for h in event_handlers if h.callback == handler]
        for h in matching:
            event_handlers.remove(h)
        return bool(matching)

    def listen(self, maxsize=0):
        """
        Return an :class:`asyncio.Queue` that will receive every event
        published from now on.
        """
        queue = asyncio.Queue(maxsize)
        self.queues.append(queue)
        return queue

    def unlisten(self, queue):
        self.queues.remove(queue)

    def publish(self, event):
        """
        Deliver ``event`` to queues and then to matching handlers.

        A failing handler is logged and does not prevent delivery to the
        rest.
        """
        log.debug("event: %s", event)
        for queue in self.queues:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                log.warning("Dropping %s for a full listener queue", type(event).__name__)
        matching_handlers = sorted(
            self.handlers.get(DomainEvent, []) + self.handlers.get(type(event), [])
        )
        for handler in matching_handlers:
            try:
                result = handler.callback(event)
            except Exception:
                log.exception("Handler %r failed for %s", handler.callback, event)
                continue
            if result == NO_MORE:
                return
