"""Cancellable timer helpers on top of the running asyncio loop.

Every helper returns an *unsub* callable that cancels the timer; calling it
more than once, or after the timer fired, is harmless.  Callbacks run on the
event-loop thread, so they never interleave with other loop callbacks.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

CALLBACK_TYPE = Callable[[], None]
CallLaterType = Callable[[float, CALLBACK_TYPE], CALLBACK_TYPE]


def async_call_later(delay_s: float, action: CALLBACK_TYPE) -> CALLBACK_TYPE:
    """Run *action* once after *delay_s* seconds; return a cancel callable."""
    handle = asyncio.get_running_loop().call_later(delay_s, action)
    return handle.cancel


def async_track_time_interval(action: CALLBACK_TYPE, interval_s: float) -> CALLBACK_TYPE:
    """Run *action* every *interval_s* seconds until the returned callable is called.

    The next run is scheduled before *action* executes, so a slow or failing
    callback does not shift the cadence.
    """
    loop = asyncio.get_running_loop()
    handle: asyncio.TimerHandle | None = None
    cancelled = False

    def _run() -> None:
        nonlocal handle
        if cancelled:
            return
        handle = loop.call_later(interval_s, _run)
        action()

    def _cancel() -> None:
        nonlocal cancelled
        cancelled = True
        if handle is not None:
            handle.cancel()

    handle = loop.call_later(interval_s, _run)
    return _cancel
