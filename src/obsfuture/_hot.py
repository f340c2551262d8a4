__all__ = ['make_hot']

import asyncio
import logging
from asyncio import AbstractEventLoop
from collections.abc import Callable, Iterable

from reactivex import abc

from ._core import ObservableFuture
from ._types import Reject, Resolve, Unsubscribe

_LOGGER = logging.getLogger(__name__)


def _forward_each[F: Callable[..., object]](
    loop: AbstractEventLoop, fns: Iterable[F], call: Callable[[F], object]
) -> None:
    # One failing subscriber must not starve the rest, nor the producer
    for fn in fns:
        try:
            call(fn)
        except Exception as exc:  # noqa: BLE001
            loop.call_exception_handler({
                'message': f'Subscriber {fn!r} of hot observable failed',
                'exception': exc,
            })


def make_hot[T](source: ObservableFuture[T], /) -> ObservableFuture[T]:
    """Turn cold observable future into hot one.

    Returns new observable future that behaves like `source`, but aggregates
    subscriptions: N subscriptions to it result in exactly one subscription
    to `source`, made right away.

    Values are forwarded only to subscribers present at the moment of
    emission, nothing is replayed. The only exception is a subscriber arriving
    after `source` settled: it gets the first value and completion
    (or the error) at once.
    Exceptions raised by subscribers go to the loop's exception handler.

    Must be called from running event loop.
    """
    loop = asyncio.get_running_loop()

    observers: list[abc.ObserverBase[T]] = []
    resolvers: list[Resolve[T]] = []
    rejectors: list[Reject] = []

    # Iterate over copies, as subscribers may leave during notification

    def on_next(value: T) -> None:
        _forward_each(loop, [*observers], lambda o: o.on_next(value))

    def on_error(error: Exception) -> None:
        _forward_each(loop, [*observers], lambda o: o.on_error(error))

    def on_completed() -> None:
        _forward_each(loop, [*observers], lambda o: o.on_completed())

    def fulfill(_: T) -> None:
        _forward_each(loop, [*resolvers], source._replay)

    def fail(_: Exception) -> None:
        _forward_each(loop, [*rejectors], lambda r: source._replay(reject=r))

    source.subscribe(on_next, on_error, on_completed)
    source.then(fulfill, fail)

    def init(
        resolve: Resolve[T], reject: Reject, observer: abc.ObserverBase[T]
    ) -> Unsubscribe | None:
        if source._replay(resolve, reject):
            return None

        observers.append(observer)
        resolvers.append(resolve)
        rejectors.append(reject)

        def unsubscribe() -> None:
            observers[:] = [o for o in observers if o is not observer]
            resolvers[:] = [r for r in resolvers if r is not resolve]
            rejectors[:] = [r for r in rejectors if r is not reject]

        return unsubscribe

    hot = ObservableFuture(init)
    _LOGGER.debug('%r shares single run of %r', hot, source)
    return hot
