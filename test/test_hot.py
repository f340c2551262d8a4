import asyncio
from unittest.mock import MagicMock

import pytest

from obsfuture import ObservableFuture, State, make_hot


def _manual() -> tuple[ObservableFuture, dict]:
    box: dict = {}

    def init(resolve, reject, observer):
        box.update(resolve=resolve, reject=reject, observer=observer)

    return ObservableFuture(init), box


@pytest.mark.asyncio
async def test_single_run():
    runs = 0

    def init(resolve, reject, observer):
        nonlocal runs
        runs += 1

    hot = make_hot(ObservableFuture(init))
    assert runs == 1  # Subscribed right away

    for _ in range(5):
        hot.subscribe()
    assert runs == 1


@pytest.mark.asyncio
async def test_single_run_with_awaits():
    init = MagicMock(side_effect=lambda resolve, reject, observer: resolve(3))
    hot = make_hot(ObservableFuture(init))
    hot.subscribe()

    assert await hot == 3
    assert await hot.then(lambda x: x * 2) == 6
    init.assert_called_once()


@pytest.mark.asyncio
@pytest.mark.parametrize('n', [1, 3, 10])
async def test_fan_out(n):
    source, box = _manual()
    hot = make_hot(source)
    seen = [[] for _ in range(n)]
    completed = MagicMock()
    for s in seen:
        hot.subscribe(s.append, on_completed=completed)

    box['observer'].on_next(1)
    box['observer'].on_next(2)
    box['resolve'](3)

    assert seen == [[1, 2, 3]] * n
    assert completed.call_count == n


@pytest.mark.asyncio
async def test_no_replay():
    source, box = _manual()
    hot = make_hot(source)

    early, late = [], []
    hot.subscribe(early.append)
    box['observer'].on_next(1)
    hot.subscribe(late.append)
    box['observer'].on_next(2)

    assert early == [1, 2]
    assert late == [2]


@pytest.mark.asyncio
async def test_unsubscribe():
    source, box = _manual()
    hot = make_hot(source)

    gone, kept = [], []
    hot.subscribe(gone.append).dispose()
    hot.subscribe(kept.append)
    box['observer'].on_next(1)

    assert gone == []
    assert kept == [1]


@pytest.mark.asyncio
async def test_unsubscribe_during_notification():
    source, box = _manual()
    hot = make_hot(source)

    first, second = [], []
    subs = {}

    def on_next(value):
        first.append(value)
        subs['first'].dispose()

    subs['first'] = hot.subscribe(on_next)
    hot.subscribe(second.append)
    box['observer'].on_next(1)
    box['observer'].on_next(2)

    assert first == [1]
    assert second == [1, 2]


@pytest.mark.asyncio
async def test_future_side():
    source, box = _manual()
    hot = make_hot(source)
    fut = hot.then(lambda v: v + 1)

    box['observer'].on_next(1)
    box['resolve'](2)

    assert await fut == 2
    assert await hot == 1
    assert hot.state is State.FULFILLED


@pytest.mark.asyncio
async def test_error_fan_out():
    error = ValueError()
    source, box = _manual()
    hot = make_hot(source)
    handlers = [MagicMock(), MagicMock()]
    for on_error in handlers:
        hot.subscribe(on_error=on_error)

    box['reject'](error)

    for on_error in handlers:
        on_error.assert_called_once_with(error)
    with pytest.raises(ValueError) as exc_info:
        await hot
    assert exc_info.value is error


@pytest.mark.asyncio
async def test_late_subscriber_after_fulfillment():
    hot = make_hot(
        ObservableFuture(lambda resolve, reject, observer: resolve(9))
    )
    seen = []
    completed = MagicMock()
    hot.subscribe(seen.append, on_completed=completed)

    assert seen == [9]
    completed.assert_called_once_with()
    assert await hot == 9


@pytest.mark.asyncio
async def test_late_subscriber_after_rejection():
    error = KeyError()

    def init(resolve, reject, observer):
        raise error

    hot = make_hot(ObservableFuture(init))
    on_error = MagicMock()
    hot.subscribe(on_error=on_error)

    on_error.assert_called_once_with(error)
    assert await hot.catch(lambda e: e) is error


def test_requires_running_loop():
    init = MagicMock(return_value=None)
    with pytest.raises(RuntimeError):
        make_hot(ObservableFuture(init))
    init.assert_not_called()


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_stop_others():
    handler = MagicMock()
    asyncio.get_running_loop().set_exception_handler(handler)
    source, box = _manual()
    hot = make_hot(source)

    seen = []
    hot.subscribe(lambda _: 1 / 0)
    hot.subscribe(seen.append)
    box['observer'].on_next(1)

    assert seen == [1]
    handler.assert_called_once()
    _, context = handler.call_args.args
    assert isinstance(context['exception'], ZeroDivisionError)


@pytest.mark.asyncio
async def test_subscriber_without_error_handler():
    handler = MagicMock()
    asyncio.get_running_loop().set_exception_handler(handler)
    error = ValueError('x')
    source, box = _manual()
    hot = make_hot(source)

    on_error = MagicMock()
    hot.subscribe()  # Default error handler of reactivex re-raises
    hot.subscribe(on_error=on_error)
    box['reject'](error)  # Must not raise into producer

    on_error.assert_called_once_with(error)
    _, context = handler.call_args.args
    assert context['exception'] is error
    assert hot.state is State.REJECTED
