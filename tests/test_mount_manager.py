from __future__ import annotations

import asyncio

import pytest

from pidrive.errors import MountError
from pidrive.services import mount_manager
from pidrive.services.mount_manager import (
    CommandMounter,
    MountConfig,
    MountManager,
    MountResult,
    MountState,
)
from pidrive.services.system_cmd import CommandResult, MockCommandRunner


class FakeMounter:
    def __init__(self, mounts: list[bool] | None = None, default: bool = True):
        self.mount_results = list(mounts or [])
        self.default = default
        self.calls: list[str] = []

    async def mount(self) -> MountResult:
        self.calls.append('mount')
        await asyncio.sleep(0)
        ok = self.mount_results.pop(0) if self.mount_results else self.default
        return MountResult(ok, 0 if ok else 32, '' if ok else 'mount: wrong fs type')

    async def unmount(self) -> MountResult:
        self.calls.append('unmount')
        await asyncio.sleep(0)
        return MountResult(False, 32, 'umount: not mounted')


def _result(exit_code: int = 0, stdout: str = '', stderr: str = '') -> CommandResult:
    return CommandResult(exit_code == 0, stdout, stderr, exit_code, 0.0)


@pytest.mark.asyncio
async def test_ensure_mounted_success_creates_root(tmp_path):
    root = tmp_path / 'mnt' / 'shared'
    mounter = FakeMounter([True])
    manager = MountManager(mounter, str(root))

    result = await manager.ensure_mounted()

    assert result.success is True
    assert root.is_dir()
    assert manager.state == MountState.MOUNTED
    assert mounter.calls == ['mount']


@pytest.mark.asyncio
async def test_ensure_mounted_retries_once_after_unmount(tmp_path):
    mounter = FakeMounter([False, True])
    manager = MountManager(mounter, str(tmp_path))

    result = await manager.ensure_mounted()

    assert result.success is True
    assert manager.state == MountState.MOUNTED
    assert manager.last_error is None
    assert mounter.calls == ['mount', 'unmount', 'mount']


@pytest.mark.asyncio
async def test_ensure_mounted_failed_retry_is_terminal(tmp_path):
    mounter = FakeMounter([False, False, False])
    manager = MountManager(mounter, str(tmp_path))

    result = await manager.ensure_mounted()

    assert result.success is False
    assert manager.state == MountState.MOUNT_FAILED
    assert manager.last_error == 'mount: wrong fs type'
    assert mounter.calls == ['mount', 'unmount', 'mount']


@pytest.mark.asyncio
async def test_refresh_is_idempotent(tmp_path):
    mounter = FakeMounter()
    manager = MountManager(mounter, str(tmp_path))

    first = await manager.refresh()
    second = await manager.refresh()

    assert first.success and second.success
    assert manager.state == MountState.MOUNTED
    assert mounter.calls == ['unmount', 'mount', 'unmount', 'mount']


@pytest.mark.asyncio
async def test_refresh_reports_mount_failure(tmp_path):
    manager = MountManager(FakeMounter(default=False), str(tmp_path))

    result = await manager.refresh()

    assert result.success is False
    assert manager.state == MountState.MOUNT_FAILED
    with pytest.raises(MountError):
        result.raise_for_status()


@pytest.mark.asyncio
async def test_concurrent_refreshes_do_not_interleave(tmp_path):
    mounter = FakeMounter()
    manager = MountManager(mounter, str(tmp_path))

    await asyncio.gather(manager.refresh(), manager.refresh(), manager.ensure_mounted())

    assert mounter.calls == ['unmount', 'mount', 'unmount', 'mount', 'mount']


@pytest.mark.asyncio
async def test_start_background_logs_failure_without_raising(tmp_path):
    manager = MountManager(FakeMounter(default=False), str(tmp_path))

    task = manager.start_background()
    await task

    assert task.exception() is None
    assert manager.state == MountState.MOUNT_FAILED


@pytest.mark.asyncio
async def test_start_background_survives_unexpected_errors(tmp_path):
    class _Broken(FakeMounter):
        async def mount(self) -> MountResult:
            raise RuntimeError('boom')

    manager = MountManager(_Broken(), str(tmp_path))

    await manager.start_background()

    assert manager.state == MountState.MOUNT_FAILED


def test_status_reports_usage_only_when_mounted(tmp_path, monkeypatch):
    class _Usage:
        total = 100
        used = 40
        free = 60

    monkeypatch.setattr(mount_manager.psutil, 'disk_usage', lambda _path: _Usage())
    manager = MountManager(FakeMounter(), str(tmp_path))

    assert manager.status()['usage'] is None
    assert manager.status()['state'] == 'unmounted'

    manager.state = MountState.MOUNTED
    status = manager.status()

    assert status['usage'] == {'total': 100, 'used': 40, 'free': 60}
    assert status['mountRoot'] == str(tmp_path)


@pytest.mark.asyncio
async def test_command_mounter_builds_loop_mount_command():
    runner = MockCommandRunner()
    config = MountConfig(
        image='/home/pi/shared.img',
        mount_root='/mnt/shared',
        fs_type='exfat',
        offset=210763776,
        uid=1000,
        gid=1000,
    )

    result = await CommandMounter(config, runner).mount()

    assert result.success is True
    assert runner.calls[0]['cmd'] == [
        'mount',
        '-t',
        'exfat',
        '-o',
        'loop,offset=210763776,uid=1000,gid=1000',
        '/home/pi/shared.img',
        '/mnt/shared',
    ]


@pytest.mark.asyncio
async def test_command_mounter_unmount_uses_sudo_when_configured():
    runner = MockCommandRunner()
    runner.queue_result(_result(exit_code=32, stderr='umount: /mnt/shared: not mounted.'))
    config = MountConfig(image='/img', mount_root='/mnt/shared', use_sudo=True)

    result = await CommandMounter(config, runner).unmount()

    assert runner.calls[0]['cmd'] == ['sudo', 'umount', '/mnt/shared']
    assert result.success is False
    assert result.exit_code == 32
    assert 'not mounted' in result.message


@pytest.mark.asyncio
async def test_command_mounter_reports_missing_binary():
    class _MissingRunner:
        async def run(self, cmd, timeout=None):
            raise FileNotFoundError(2, 'No such file or directory', cmd[0])

    config = MountConfig(image='/img', mount_root='/mnt/shared')

    result = await CommandMounter(config, _MissingRunner()).mount()

    assert result.success is False
    assert result.exit_code == 127
