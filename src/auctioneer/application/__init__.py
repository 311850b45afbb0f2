"""Application services for Auctioneer."""

from auctioneer.application.change_notifier import (
    AgentStreamSubscription,
    ChangeNotifier,
    StreamFrame,
)
from auctioneer.application.file_watcher import FileWatcher

__all__ = [
    "AgentStreamSubscription",
    "ChangeNotifier",
    "FileWatcher",
    "StreamFrame",
]
