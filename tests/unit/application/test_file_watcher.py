"""Unit tests for the stat-polling FileWatcher."""

import asyncio
from pathlib import Path

import pytest
from auctioneer.application.file_watcher import FileWatcher


@pytest.fixture
def watched(tmp_path: Path) -> Path:
    path = tmp_path / "sessions.json"
    path.write_text("{}")
    return path


@pytest.mark.asyncio
class TestFileWatcher:
    async def test_missing_file_cannot_be_watched(self, tmp_path):
        watcher = FileWatcher(tmp_path / "absent.json", lambda: None, interval=0.05)
        with pytest.raises(OSError):
            watcher.start()

    async def test_change_invokes_callback(self, watched):
        changes = asyncio.Event()
        watcher = FileWatcher(watched, changes.set, interval=0.05)
        watcher.start()

        watched.write_text('{"agent:main:main": {}}')

        await asyncio.wait_for(changes.wait(), timeout=2)
        watcher.close()
        await watcher.wait_closed()

    async def test_unchanged_file_stays_quiet(self, watched):
        calls = []
        watcher = FileWatcher(watched, lambda: calls.append(1), interval=0.05)
        watcher.start()

        await asyncio.sleep(0.3)

        assert calls == []
        watcher.close()
        await watcher.wait_closed()

    async def test_deletion_counts_as_change(self, watched):
        changes = asyncio.Event()
        watcher = FileWatcher(watched, changes.set, interval=0.05)
        watcher.start()

        watched.unlink()

        await asyncio.wait_for(changes.wait(), timeout=2)
        watcher.close()
        await watcher.wait_closed()

    async def test_close_is_idempotent(self, watched):
        calls = []
        watcher = FileWatcher(watched, lambda: calls.append(1), interval=0.05)
        watcher.start()

        watcher.close()
        watcher.close()
        await watcher.wait_closed()
        watched.write_text("changed after close")
        await asyncio.sleep(0.2)

        assert watcher.closed
        assert calls == []

    async def test_close_before_start(self, watched):
        watcher = FileWatcher(watched, lambda: None)
        watcher.close()
        await watcher.wait_closed()
        assert watcher.closed
