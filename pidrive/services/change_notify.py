from __future__ import annotations

import logging
from pathlib import Path

from .system_cmd import CommandRunner, RealCommandRunner

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Flush writes and drop a marker file for the external volume watcher."""

    def __init__(self, marker_file: str, runner: CommandRunner | None = None):
        self.marker_file = Path(marker_file)
        self._runner = runner or RealCommandRunner()

    async def notify(self) -> None:
        try:
            result = await self._runner.run(['sync'])
            if not result.success:
                logger.warning('sync exited with %s: %s', result.exit_code, result.stderr or result.stdout)
        except OSError as exc:
            logger.warning('sync could not be started: %s', exc)

        try:
            self.marker_file.write_text('')
        except OSError as exc:
            logger.warning('Failed to write change marker %s: %s', self.marker_file, exc)
