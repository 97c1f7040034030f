"""Global pytest configuration."""

from __future__ import annotations

import asyncio
import inspect
import os

import pytest

# Keep a developer's heuristics.yaml out of the test run.
os.environ.setdefault("CONFIG_DIR", os.path.join(os.path.dirname(__file__), "no-config"))

# Observer and bus tests wait on queues; fail instead of hanging.
ASYNC_TEST_TIMEOUT = 10.0


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):  # type: ignore[override]
    """Run coroutine tests on a fresh event loop, closed afterwards."""
    if not inspect.iscoroutinefunction(pyfuncitem.obj):
        return None

    testargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        loop.run_until_complete(
            asyncio.wait_for(pyfuncitem.obj(**testargs), timeout=ASYNC_TEST_TIMEOUT)
        )
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
    finally:
        asyncio.set_event_loop(None)
        loop.close()
    return True


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring asyncio support")
