__all__ = ['run_deferred']

import logging
from asyncio import AbstractEventLoop
from collections.abc import Callable

_LOGGER = logging.getLogger(__name__)


def run_deferred[*Ts](
    loop: AbstractEventLoop, fn: Callable[[*Ts], object], /, *args: *Ts
) -> None:
    """Schedule `fn(*args)` for the next iteration of `loop`.

    Safe to call from any thread. Once scheduled, the call cannot be revoked.
    Exceptions raised by `fn` go to the loop's exception handler.
    """
    if loop.is_closed():
        _LOGGER.warning('Event loop is closed, dropping call to %r', fn)
        return
    loop.call_soon_threadsafe(fn, *args)
