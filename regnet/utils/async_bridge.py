"""Run the async engine from the sync typer commands.

Commands build a small coroutine around a ``network_service()`` context and
hand it to ``run_async``:

    network = run_async(_start())
"""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

from regnet.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_async_context() -> bool:
    """True when called from inside a running event loop."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def run_async(coro: Coroutine[Any, Any, T], *, debug: bool = False) -> T:
    """Drive ``coro`` to completion on a fresh event loop.

    The command id set by the CLI callback is visible inside the coroutine
    because ``asyncio.run`` copies the current context.

    Raises:
        RuntimeError: when a loop is already running in this thread. The
            coroutine is closed so it is not reported as never awaited.
    """
    if is_async_context():
        coro.close()
        raise RuntimeError("run_async() cannot be called from a running event loop")

    try:
        return asyncio.run(coro, debug=debug)
    except Exception as e:
        # the command renders the error; keep the type for --verbose runs
        logger.debug("command_coroutine_failed", error_type=type(e).__name__, error=str(e))
        raise
