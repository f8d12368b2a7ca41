from __future__ import annotations

from fastapi import Request

from .services.change_notify import ChangeNotifier
from .services.file_ops import FileOps
from .services.mount_manager import MountManager


def get_file_ops(request: Request) -> FileOps:
    return request.app.state.file_ops


def get_mount_manager(request: Request) -> MountManager:
    return request.app.state.mount_manager


def get_notifier(request: Request) -> ChangeNotifier:
    return request.app.state.notifier
