from collections.abc import Callable
from typing import Protocol

from reactivex import abc

type Reject = Callable[[Exception], None]
type Unsubscribe = Callable[[], None]


class Resolve[T](Protocol):
    def __call__(self, value: T = ..., /) -> None: ...


type Init[T] = Callable[
    [Resolve[T], Reject, abc.ObserverBase[T]],
    Unsubscribe | abc.DisposableBase | None,
]
