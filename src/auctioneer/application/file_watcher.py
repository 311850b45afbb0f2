"""Stat-polling file watcher."""

import asyncio
import os
from collections.abc import Callable
from pathlib import Path

from auctioneer.infrastructure.logger import get_logger

logger = get_logger(__name__)

# (mtime_ns, size), or None once the file disappears
Signature = tuple[int, int] | None


class FileWatcher:
    """Invoke a callback whenever a file's mtime or size changes.

    Polls ``os.stat`` on the event loop every ``interval`` seconds. Attaching
    requires the file to exist; deletion and re-creation after that count as
    changes.
    """

    def __init__(
        self,
        path: Path,
        on_change: Callable[[], None],
        interval: float = 0.5,
    ):
        """Initialize watcher.

        Args:
            path: File to watch
            on_change: Called from the event loop for every detected change
            interval: Seconds between stat calls
        """
        self.path = path
        self.on_change = on_change
        self.interval = interval
        self._signature: Signature = None
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Attach to the file and begin polling.

        Raises:
            OSError: If the file cannot be stat'ed
            RuntimeError: If called without a running event loop
        """
        if self._task is not None:
            return
        stat = os.stat(self.path)
        self._signature = (stat.st_mtime_ns, stat.st_size)
        self._task = asyncio.get_running_loop().create_task(self._poll_loop())

    def close(self) -> None:
        """Stop polling. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def _read_signature(self) -> Signature:
        try:
            stat = os.stat(self.path)
        except OSError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            current = self._read_signature()
            if current != self._signature:
                self._signature = current
                logger.debug("watched_file_changed", path=str(self.path))
                self.on_change()
