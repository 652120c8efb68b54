"""Tests for the compose CLI runner."""

import sys

import pytest

from regnet.exceptions import DockerCommandError
from regnet.network.infrastructure.compose_runner import ComposeRunner, strip_ansi


def test_strip_ansi_removes_colors():
    assert strip_ansi("\x1b[31mError\x1b[0m: no such service") == "Error: no such service"
    assert strip_ansi("") == ""


def test_base_command_defaults_to_docker_compose():
    assert ComposeRunner().base_command == ["docker", "compose"]
    assert ComposeRunner("/usr/local/bin/docker-compose").base_command == ["/usr/local/bin/docker-compose"]


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="user ids are only set on linux")
def test_env_carries_host_user_ids():
    env = ComposeRunner().build_env()
    assert env["USERID"].isdigit()
    assert env["GROUPID"].isdigit()


class TestRun:
    @pytest.mark.asyncio
    async def test_captures_stdout(self, tmp_path):
        runner = ComposeRunner(sys.executable)

        result = await runner.run("-c", "print('\\x1b[32mok\\x1b[0m')", cwd=tmp_path)

        assert result.exit_code == 0
        assert result.out.strip() == "ok"

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises_clean_stderr(self, tmp_path):
        runner = ComposeRunner(sys.executable)
        script = "import sys; sys.stderr.write('\\x1b[31mservice bob failed\\x1b[0m\\n'); sys.exit(3)"

        with pytest.raises(DockerCommandError) as exc_info:
            await runner.run("-c", script, cwd=tmp_path)

        assert str(exc_info.value) == "service bob failed"
        assert exc_info.value.exit_code == 3

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        runner = ComposeRunner(str(tmp_path / "no-such-compose"))
        with pytest.raises(DockerCommandError):
            await runner.run("version")
