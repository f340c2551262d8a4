__all__ = ['ObservableFuture', 'State']

import asyncio
import enum
import logging
import os
from asyncio import AbstractEventLoop, Future
from collections.abc import Callable, Generator
from functools import partial
from inspect import isawaitable
from threading import Lock
from typing import Any, Final
from warnings import warn

import wrapt
from reactivex import Observable, abc
from reactivex.disposable import Disposable

from ._deferred import run_deferred
from ._types import Init, Reject, Resolve

_LOGGER = logging.getLogger(__name__)

_WARN_RERUN = bool(os.getenv('OBSFUTURE_WARN_RERUN'))


class State(enum.Enum):
    PENDING = 'pending'
    FULFILLED = 'fulfilled'
    REJECTED = 'rejected'


class _Unset(enum.Enum):
    token = 0


_unset: Final = _Unset.token

type _Waiter = tuple[AbstractEventLoop, Callable[[Any], None]]

# ------------------------------ observer shim -------------------------------


class _Observer[T](wrapt.ObjectProxy):
    """Forwards signals to subscriber, then to future state of its owner.

    Goes silent after its own `on_error` or `on_completed`.
    """

    __wrapped__: abc.ObserverBase[T]

    def __init__(
        self, wrapped: abc.ObserverBase[T], owner: 'ObservableFuture[T]'
    ) -> None:
        super().__init__(wrapped)
        self._self_owner = owner
        self._self_stopped = False

    def on_next(self, value: T) -> None:
        if self._self_stopped:
            return
        try:
            self.__wrapped__.on_next(value)
        finally:
            self._self_owner._on_next(value)

    def on_error(self, error: Exception) -> None:
        if self._self_stopped:
            return
        self._self_stopped = True
        try:
            self.__wrapped__.on_error(error)
        finally:
            self._self_owner._on_error(error)

    def on_completed(self) -> None:
        if self._self_stopped:
            return
        self._self_stopped = True
        try:
            self.__wrapped__.on_completed()
        finally:
            self._self_owner._on_completed()

    def resolve(self, value: T | _Unset = _unset, /) -> None:
        if value is not _unset:
            self.on_next(value)
        self.on_completed()

    def reject(self, error: Exception, /) -> None:
        self.on_error(error)


# ------------------------------- hybrid value -------------------------------


class ObservableFuture[T](Observable[T]):
    """Hybrid of `reactivex.Observable` and awaitable future.

    Proxies async process whose shape is unknown beforehand: it may yield
    a value or an error once (-> future), or many times (-> observable).

    Every stream subscription runs `init(resolve, reject, observer)` again,
    like any cold observable does. Future side (`then`, `catch`, `finally_`,
    `await`) resolves with the first value ever emitted and never runs `init`
    on its own if a subscription did it already.
    Use `make_hot()` to share a single run of `init` among all subscribers.

    Usage:
        >>> def init(resolve, reject, observer):
        ...     observer.on_next(1)
        ...     observer.on_next(2)
        ...     resolve()
        >>> value = ObservableFuture(init)
        >>> value.subscribe(print)
        1
        2
        >>> await value
        1
    """

    def __init__(self, init: Init[T], /) -> None:
        super().__init__()
        self._init = init
        self._init_ran = False
        self._mutex = Lock()
        self._state = State.PENDING
        self._value: T | _Unset = _unset
        self._error: Exception | None = None
        self._on_fulfilled: list[_Waiter] = []
        self._on_rejected: list[_Waiter] = []

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(state={self._state.value})'

    @property
    def state(self) -> State:
        return self._state

    def done(self) -> bool:
        return self._state is not State.PENDING

    def _replay(
        self, resolve: Resolve[T] | None = None, reject: Reject | None = None
    ) -> bool:
        """Pass outcome to `resolve` or `reject`. False if still pending"""
        match self._state:
            case State.FULFILLED:
                if resolve is not None:
                    resolve(*(() if self._value is _unset else (self._value,)))
            case State.REJECTED:
                if reject is not None:
                    assert self._error is not None
                    reject(self._error)
            case _:
                return False
        return True

    def _result(self) -> T | None:
        return None if self._value is _unset else self._value

    # ------------------------------ stream side -----------------------------

    def _subscribe_core(
        self,
        observer: abc.ObserverBase[T],
        scheduler: abc.SchedulerBase | None = None,
    ) -> abc.DisposableBase:
        shim = _Observer(observer, self)
        if self._init_ran and _WARN_RERUN:
            warn(
                f'Producer of {self!r} runs again for another subscriber. '
                'Wrap it with `make_hot()` to share a single run',
                stacklevel=2,
            )
        self._init_ran = True
        _LOGGER.debug('Run producer of %r', self)
        try:
            cancel = self._init(shim.resolve, shim.reject, shim)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.debug('Producer of %r failed: %r', self, exc)
            shim.reject(exc)
            return Disposable()

        if cancel is None:
            return Disposable()
        if isinstance(cancel, abc.DisposableBase):
            return cancel
        return Disposable(cancel)

    def _on_next(self, value: T) -> None:
        with self._mutex:
            if self._state is State.PENDING and self._value is _unset:
                self._value = value

    def _on_completed(self) -> None:
        with self._mutex:
            if self._state is not State.PENDING:
                return
            self._state = State.FULFILLED
            waiters, self._on_fulfilled = self._on_fulfilled, []
            self._on_rejected = []
            value = self._result()

        _LOGGER.debug('%r fulfilled', self)
        for loop, callback in waiters:
            run_deferred(loop, callback, value)

    def _on_error(self, error: Exception) -> None:
        with self._mutex:
            if self._state is not State.PENDING:
                return
            self._state = State.REJECTED
            self._error = error
            waiters, self._on_rejected = self._on_rejected, []
            self._on_fulfilled = []

        _LOGGER.debug('%r rejected with %r', self, error)
        for loop, callback in waiters:
            run_deferred(loop, callback, error)

    def _log_kickoff_error(self, error: Exception) -> None:
        # Surfaced through `then` by the state machine
        _LOGGER.debug('Producer of %r reported %r', self, error)

    # ------------------------------ future side -----------------------------

    def then[R1, R2](
        self,
        on_fulfilled: Callable[[T], R1] | None = None,
        on_rejected: Callable[[Exception], R2] | None = None,
    ) -> Future[R1 | R2]:
        """Chain callbacks to resolution of this value.

        Returns new future, resolved with the result of matching callback,
        or rejected with its exception.
        Missing callback passes value (or error) through unchanged.
        Must be called from running event loop.
        """
        loop = asyncio.get_running_loop()
        fut = loop.create_future()

        # Producer is lazy, run it for future-only consumers too
        if not self._init_ran:
            self.subscribe(on_error=self._log_kickoff_error)

        if on_fulfilled is None and on_rejected is None:
            fut.set_result(None)
            return fut

        fulfill = partial(_settle, fut, on_fulfilled)
        reject = (
            partial(_settle, fut, on_rejected)
            if on_rejected is not None
            else partial(_fail, fut)
        )
        with self._mutex:
            state = self._state
            if state is State.PENDING:
                self._on_fulfilled.append((loop, fulfill))
                self._on_rejected.append((loop, reject))
                return fut

        if state is State.FULFILLED:
            run_deferred(loop, fulfill, self._result())
        else:
            run_deferred(loop, reject, self._error)
        return fut

    def catch[R](
        self, on_rejected: Callable[[Exception], R] | None
    ) -> Future[T | R]:
        return self.then(None, on_rejected)

    def finally_(
        self, on_completed: Callable[[], object] | None = None
    ) -> Future[T]:
        """Run `on_completed` when settled, keep value or error as is"""
        on_completed = on_completed or _do_nothing

        def on_fulfilled(value: T) -> T:
            on_completed()
            return value

        def on_rejected(error: Exception) -> T:
            on_completed()
            raise error

        return self.then(on_fulfilled, on_rejected)

    def __await__(self) -> Generator[Any, Any, T]:
        return self.then(_identity).__await__()


# --------------------------------- helpers ----------------------------------


def _do_nothing() -> None:
    pass


def _identity[T](x: T) -> T:
    return x


def _settle[R](
    fut: Future[R], fn: Callable[[Any], R] | None, arg: Any
) -> None:
    if fut.done():  # Cancelled by consumer
        return
    if fn is None:
        fut.set_result(arg)
        return

    try:
        ret = fn(arg)
    except Exception as exc:  # noqa: BLE001
        fut.set_exception(exc)
        return

    if isawaitable(ret):
        inner = asyncio.ensure_future(ret)
        inner.add_done_callback(partial(_copy_outcome, fut))
    else:
        fut.set_result(ret)


def _fail(fut: Future, error: Exception) -> None:
    if not fut.done():
        fut.set_exception(error)


def _copy_outcome(dst: Future, src: Future) -> None:
    if dst.done():
        return
    if src.cancelled():
        dst.cancel()
    elif (exc := src.exception()) is not None:
        dst.set_exception(exc)
    else:
        dst.set_result(src.result())
