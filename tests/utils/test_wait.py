"""Tests for the polling helper."""

import pytest

from regnet.exceptions import NodeOfflineError
from regnet.utils.wait import wait_for


@pytest.mark.asyncio
async def test_returns_first_success():
    attempts = []

    async def probe():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("not yet")
        return "ready"

    assert await wait_for(probe, interval=0.001, timeout=1.0, name="alice") == "ready"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_times_out_with_last_error():
    async def probe():
        raise ConnectionError("connection refused")

    with pytest.raises(NodeOfflineError, match="alice") as exc_info:
        await wait_for(probe, interval=0.01, timeout=0.03, name="alice")

    assert isinstance(exc_info.value.original_error, ConnectionError)
    assert exc_info.value.context["attempts"] >= 1
