from __future__ import annotations

import pytest

from pidrive.services.system_cmd import (
    CommandResult,
    MockCommandRunner,
    RealCommandRunner,
    shell_preview,
)


@pytest.mark.asyncio
async def test_real_runner_captures_output_and_exit_code():
    result = await RealCommandRunner().run(['sh', '-c', 'echo out; echo err >&2; exit 3'])

    assert result.success is False
    assert result.exit_code == 3
    assert result.stdout == 'out'
    assert result.stderr == 'err'


@pytest.mark.asyncio
async def test_real_runner_kills_command_on_timeout():
    result = await RealCommandRunner(default_timeout=1).run(['sleep', '5'])

    assert result.success is False
    assert result.exit_code == 124
    assert 'timed out after 1s' in result.stderr


@pytest.mark.asyncio
async def test_mock_runner_returns_queued_results_in_order():
    runner = MockCommandRunner()
    runner.queue_result(CommandResult(False, '', 'busy', 32, 0.0))

    first = await runner.run(['umount', '/mnt/shared'], timeout=5)
    second = await runner.run(['mount', '/mnt/shared'])

    assert first.exit_code == 32
    assert second.success is True
    assert runner.calls[0]['timeout'] == 5
    assert [c['cmd'][0] for c in runner.calls] == ['umount', 'mount']


def test_shell_preview_quotes_arguments():
    assert shell_preview(['mount', '-o', 'loop,uid=1000', '/home/pi/my image.img']) == (
        "mount -o loop,uid=1000 '/home/pi/my image.img'"
    )
