"""Tests for the async/sync bridge used by the CLI."""

import asyncio

import pytest

from regnet.utils.async_bridge import is_async_context, run_async


class TestIsAsyncContext:
    def test_not_in_async_context(self):
        assert is_async_context() is False

    @pytest.mark.asyncio
    async def test_in_async_context(self):
        assert is_async_context() is True


class TestRunAsync:
    def test_returns_result(self):
        async def simple():
            await asyncio.sleep(0)
            return "success"

        assert run_async(simple()) == "success"

    def test_propagates_exceptions(self):
        async def failing():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            run_async(failing())

    @pytest.mark.asyncio
    async def test_refuses_running_loop(self):
        async def simple():
            return 1

        with pytest.raises(RuntimeError, match="running event loop"):
            run_async(simple())
