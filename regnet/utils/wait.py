"""Polling helper used to wait for nodes to come online.

Unlike a retry policy this keeps calling the probe at a fixed interval until
it succeeds or the overall timeout elapses; the last probe error is attached
to the raised ``NodeOfflineError``.

Usage:
    await wait_for(lambda: service.get_info(node), interval=3.0, timeout=120.0)
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from regnet.exceptions import NodeOfflineError
from regnet.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def wait_for(
    probe: Callable[[], Awaitable[T]],
    *,
    interval: float,
    timeout: float,
    name: str = "",
) -> T:
    """Await ``probe()`` repeatedly until it returns without raising.

    Args:
        probe: Async function to call (takes no arguments)
        interval: Seconds between attempts
        timeout: Overall deadline in seconds

    Returns:
        The first successful result of ``probe()``

    Raises:
        NodeOfflineError: if the deadline passes before a probe succeeds
    """
    deadline = time.monotonic() + timeout
    attempt = 0
    while True:
        attempt += 1
        try:
            return await probe()
        except Exception as e:
            if time.monotonic() + interval > deadline:
                logger.warning("wait_for_timed_out", name=name, attempts=attempt, error=str(e))
                raise NodeOfflineError(
                    f"'{name}' did not come online within {timeout:g} seconds",
                    context={"attempts": attempt},
                    original_error=e,
                ) from e
            logger.debug("wait_for_retrying", name=name, attempt=attempt, error=str(e))
            await asyncio.sleep(interval)
