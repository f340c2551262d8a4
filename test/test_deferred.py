import asyncio
import logging
from unittest.mock import MagicMock

import pytest

from obsfuture._deferred import run_deferred


@pytest.mark.asyncio
async def test_call_is_deferred():
    fn = MagicMock()
    run_deferred(asyncio.get_running_loop(), fn, 1, 2)
    fn.assert_not_called()

    await asyncio.sleep(0)
    fn.assert_called_once_with(1, 2)


def test_closed_loop_drops_call(caplog):
    loop = asyncio.new_event_loop()
    loop.close()
    fn = MagicMock()

    with caplog.at_level(logging.WARNING, logger='obsfuture'):
        run_deferred(loop, fn)

    fn.assert_not_called()
    assert [r.levelno for r in caplog.records] == [logging.WARNING]
    assert 'dropping' in caplog.text
