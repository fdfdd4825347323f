import abc
import logging

log = logging.getLogger(__name__)


class IScheduler(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def execute_every(self, period, func):
        "execute func every period; return a handle with cancel()"

    @abc.abstractmethod
    def execute_after(self, delay, func):
        "execute func after delay; return a handle with cancel()"


class PeriodicCommand:
    """
    A function invoked every ``period`` seconds until cancelled.

    The next invocation is scheduled before the function runs, so a
    failing function doesn't stop the cadence.
    """

    def __init__(self, loop, period, func):
        if period <= 0:
            raise ValueError("A PeriodicCommand must have a positive, non-zero delay.")
        self.loop = loop
        self.period = period
        self.func = func
        self.cancelled = False
        self._handle = None

    def start(self):
        self._handle = self.loop.call_later(self.period, self._run)
        return self

    def _run(self):
        if self.cancelled:
            return
        self.start()
        try:
            self.func()
        except Exception:
            log.exception("Periodic command %r failed", self.func)

    def cancel(self):
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()


class AsyncioScheduler(IScheduler):
    """
    Schedule commands on an asyncio event loop.

    All commands run on the loop's thread, so they may touch any state
    owned by that loop.
    """

    def __init__(self, loop):
        self.loop = loop

    def execute_every(self, period, func):
        return PeriodicCommand(self.loop, period, func).start()

    def execute_after(self, delay, func):
        return self.loop.call_later(delay, func)
