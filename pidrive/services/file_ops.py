from __future__ import annotations

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from ..errors import InvalidState, PathEscape
from .path_guard import resolve, resolve_entry

_CHUNK_SIZE = 1024 * 1024


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes:
        ...


class FileOps:
    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def safe_path(self, rel: str) -> Path:
        return resolve(self.root, rel)

    def safe_entry(self, rel: str, name: str, follow_symlinks: bool = True) -> Path:
        return resolve_entry(self.root, rel, name, follow_symlinks=follow_symlinks)

    def list_dir(self, rel: str) -> list[dict]:
        target = self.safe_path(rel)
        if not target.exists():
            raise FileNotFoundError('Directory not found')
        if not target.is_dir():
            raise NotADirectoryError('Path is not a directory')

        items: list[dict] = []
        for entry in target.iterdir():
            # links that dangle or leave the root are described by the link itself
            contained = self._contains(entry) and entry.exists()
            stat = entry.stat() if contained else entry.lstat()
            items.append(
                {
                    'name': entry.name,
                    'size': stat.st_size,
                    'modified': datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                    'isDirectory': contained and entry.is_dir(),
                }
            )
        return items

    def _contains(self, entry: Path) -> bool:
        try:
            resolve(self.root, str(entry))
        except PathEscape:
            return False
        return True

    def upload_dir(self, rel: str) -> Path:
        target = self.safe_path(rel)
        if not target.is_dir():
            raise InvalidState('Target directory does not exist')
        return target

    def upload_targets(self, rel: str, filenames: list[str]) -> list[Path]:
        self.upload_dir(rel)
        return [self.safe_entry(rel, name) for name in filenames]

    async def store_upload(self, rel: str, filename: str, source: AsyncReadable) -> dict:
        self.upload_dir(rel)
        target = self.safe_entry(rel, filename)

        size = 0
        with target.open('wb') as f:
            while chunk := await source.read(_CHUNK_SIZE):
                f.write(chunk)
                size += len(chunk)
            f.flush()
            os.fsync(f.fileno())
        return {'name': target.name, 'size': size}

    def download_path(self, filename: str) -> Path:
        target = self.safe_entry('', filename)
        if not target.is_file():
            raise FileNotFoundError('File not found')
        return target

    def delete(self, rel: str, filename: str):
        target = self.safe_entry(rel, filename, follow_symlinks=False)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink(missing_ok=False)

    def rename(self, rel: str, old_name: str, new_name: str) -> str:
        source = self.safe_entry(rel, old_name, follow_symlinks=False)
        destination = self.safe_entry(rel, new_name, follow_symlinks=False)
        if destination.exists() or destination.is_symlink():
            raise InvalidState('File with that name already exists')
        source.rename(destination)
        return new_name
