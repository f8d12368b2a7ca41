from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import psutil

from ..config import Settings
from ..errors import MountError
from .system_cmd import CommandRunner, RealCommandRunner, shell_preview

logger = logging.getLogger(__name__)


class MountState(str, enum.Enum):
    UNMOUNTED = 'unmounted'
    MOUNTED = 'mounted'
    MOUNT_FAILED = 'mount_failed'


@dataclass(frozen=True)
class MountConfig:
    image: str
    mount_root: str
    fs_type: str = 'exfat'
    offset: int = 0
    uid: int = 1000
    gid: int = 1000
    use_sudo: bool = False

    @classmethod
    def from_settings(cls, cfg: Settings) -> MountConfig:
        return cls(
            image=cfg.volume_image,
            mount_root=cfg.mount_root,
            fs_type=cfg.volume_fs_type,
            offset=cfg.volume_offset,
            uid=cfg.volume_uid,
            gid=cfg.volume_gid,
            use_sudo=cfg.mount_use_sudo,
        )

    @property
    def mount_options(self) -> str:
        return f'loop,offset={self.offset},uid={self.uid},gid={self.gid}'


@dataclass(frozen=True)
class MountResult:
    success: bool
    exit_code: int = 0
    message: str = ''

    def raise_for_status(self) -> None:
        if not self.success:
            raise MountError(self.message or 'Mount command failed', self.exit_code)


class Mounter(Protocol):
    async def mount(self) -> MountResult:
        ...

    async def unmount(self) -> MountResult:
        ...


class CommandMounter:
    def __init__(self, config: MountConfig, runner: CommandRunner | None = None):
        self.config = config
        self._runner = runner or RealCommandRunner()

    def _cmd(self, *args: str) -> list[str]:
        prefix = ['sudo'] if self.config.use_sudo else []
        return [*prefix, *args]

    def mount_cmd(self) -> list[str]:
        return self._cmd(
            'mount',
            '-t',
            self.config.fs_type,
            '-o',
            self.config.mount_options,
            self.config.image,
            self.config.mount_root,
        )

    def unmount_cmd(self) -> list[str]:
        return self._cmd('umount', self.config.mount_root)

    async def mount(self) -> MountResult:
        return await self._run(self.mount_cmd())

    async def unmount(self) -> MountResult:
        return await self._run(self.unmount_cmd())

    async def _run(self, cmd: list[str]) -> MountResult:
        logger.debug('Running %s', shell_preview(cmd))
        try:
            result = await self._runner.run(cmd)
        except OSError as exc:
            return MountResult(False, 127, str(exc))
        return MountResult(result.success, result.exit_code, result.stderr or result.stdout)


class MountManager:
    """Owns the mount state of the backing volume.

    Every transition runs under one lock, so a refresh can never interleave
    with the startup mount or with another refresh.
    """

    def __init__(self, mounter: Mounter, mount_root: str):
        self.mounter = mounter
        self.mount_root = Path(mount_root)
        self.state = MountState.UNMOUNTED
        self.last_error: str | None = None
        self._lock = asyncio.Lock()

    async def ensure_mounted(self) -> MountResult:
        async with self._lock:
            self.mount_root.mkdir(parents=True, exist_ok=True)

            result = await self.mounter.mount()
            if result.success:
                self._record(result)
                logger.info('Shared drive mounted at %s', self.mount_root)
                return result

            self._record(result)
            logger.warning('Mount may already exist or failed: %s', result.message)

            await self._unmount_quietly()
            result = await self.mounter.mount()
            self._record(result)
            if result.success:
                logger.info('Shared drive remounted at %s', self.mount_root)
            else:
                logger.error('Failed to mount shared drive: %s', result.message)
            return result

    def start_background(self) -> asyncio.Task:
        return asyncio.create_task(self._ensure_mounted_logged(), name='pidrive-ensure-mounted')

    async def _ensure_mounted_logged(self) -> None:
        try:
            await self.ensure_mounted()
        except Exception:
            self.state = MountState.MOUNT_FAILED
            logger.exception('Startup mount of %s aborted', self.mount_root)

    async def refresh(self) -> MountResult:
        async with self._lock:
            await self._unmount_quietly()
            result = await self.mounter.mount()
            self._record(result)
            if result.success:
                logger.info('Shared drive refreshed at %s', self.mount_root)
            else:
                logger.error('Failed to refresh mount: %s', result.message)
            return result

    def status(self) -> dict:
        usage = None
        if self.state == MountState.MOUNTED:
            try:
                du = psutil.disk_usage(str(self.mount_root))
                usage = {'total': du.total, 'used': du.used, 'free': du.free}
            except OSError:
                usage = None
        return {
            'state': self.state.value,
            'mountRoot': str(self.mount_root),
            'lastError': self.last_error,
            'usage': usage,
        }

    async def _unmount_quietly(self) -> None:
        result = await self.mounter.unmount()
        if result.success:
            self.state = MountState.UNMOUNTED
        else:
            logger.debug('Unmount of %s ignored: %s', self.mount_root, result.message)

    def _record(self, result: MountResult) -> None:
        if result.success:
            self.state = MountState.MOUNTED
            self.last_error = None
        else:
            self.state = MountState.MOUNT_FAILED
            self.last_error = result.message or f'mount exited with {result.exit_code}'
