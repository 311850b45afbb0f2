"""Push channel of agent roster snapshots for stream subscribers.

Each subscription owns all of its timers and watchers:

- one snapshot immediately on open
- one debounced snapshot per burst of file changes
- one snapshot per poll interval, regardless of changes
- one payload-free heartbeat per heartbeat interval

``close()`` releases everything exactly once.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter

from auctioneer.application.file_watcher import FileWatcher
from auctioneer.domain.models import Agent
from auctioneer.domain.ports.agent_state_provider import AgentStateProvider
from auctioneer.infrastructure.config import StreamConfig
from auctioneer.infrastructure.logger import get_logger

logger = get_logger(__name__)

_agents_adapter = TypeAdapter(list[Agent])

HEARTBEAT_FRAME = ": heartbeat\n\n"


class Watcher(Protocol):
    def start(self) -> None: ...

    def close(self) -> None: ...


WatcherFactory = Callable[[Path, Callable[[], None], float], Watcher]


@dataclass(frozen=True)
class StreamFrame:
    """One server-sent event. ``agents`` is None for heartbeats."""

    agents: list[Agent] | None = None

    @property
    def is_heartbeat(self) -> bool:
        return self.agents is None

    def encode(self) -> str:
        if self.agents is None:
            return HEARTBEAT_FRAME
        payload = _agents_adapter.dump_json(self.agents, by_alias=True).decode()
        return f"data: {payload}\n\n"


class AgentStreamSubscription:
    """Per-subscriber stream state; iterate it to receive frames."""

    def __init__(
        self,
        provider: AgentStateProvider,
        config: StreamConfig,
        watcher_factory: WatcherFactory = FileWatcher,
        on_close: Callable[["AgentStreamSubscription"], None] | None = None,
    ):
        self.provider = provider
        self.config = config
        self._watcher_factory = watcher_factory
        self._on_close = on_close
        self._queue: asyncio.Queue[StreamFrame | None] = asyncio.Queue()
        self._watchers: list[Watcher] = []
        self._poll_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._debounce_task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._opened = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)

    async def open(self) -> None:
        """Emit the initial snapshot, then start timers and watchers.

        Watch targets that cannot be attached are skipped.
        """
        if self._opened or self._closed:
            return
        self._opened = True

        await self._emit_snapshot()
        if self._closed:
            return

        loop = asyncio.get_running_loop()
        self._poll_task = loop.create_task(self._poll_loop())
        self._heartbeat_task = loop.create_task(self._heartbeat_loop())

        targets = await asyncio.to_thread(self.provider.watch_targets)
        for path in targets:
            if self._closed:
                return
            watcher = self._watcher_factory(path, self.trigger, self.config.watch_interval_seconds)
            try:
                watcher.start()
            except OSError as e:
                logger.debug("watch_path_skipped", path=str(path), error=str(e))
                continue
            self._watchers.append(watcher)

        logger.debug("stream_subscription_opened", watchers=len(self._watchers))

    def trigger(self) -> None:
        """Signal a change; restarts the debounce window."""
        if self._closed:
            return
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounced_emit())

    def close(self) -> None:
        """Cancel every timer and close every watcher. Idempotent."""
        if self._closed:
            return
        self._closed = True

        for task in self._tasks():
            if not task.done():
                task.cancel()

        for watcher in self._watchers:
            try:
                watcher.close()
            except Exception as e:
                logger.warning("watcher_close_failed", error=str(e))
        self._watchers.clear()

        self._queue.put_nowait(None)
        if self._on_close is not None:
            self._on_close(self)
        logger.debug("stream_subscription_closed")

    async def aclose(self) -> None:
        """Close and wait until every cancelled task has finished."""
        self.close()
        await asyncio.gather(*self._tasks(), return_exceptions=True)

    async def next_frame(self) -> StreamFrame | None:
        """Wait for the next frame; None once the subscription is closed."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def __aiter__(self) -> "AgentStreamSubscription":
        return self

    async def __anext__(self) -> StreamFrame:
        frame = await self.next_frame()
        if frame is None:
            raise StopAsyncIteration
        return frame

    async def __aenter__(self) -> "AgentStreamSubscription":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _tasks(self) -> list[asyncio.Task[None]]:
        tasks = [t for t in (self._poll_task, self._heartbeat_task, self._debounce_task) if t]
        return tasks + list(self._pending)

    async def _emit_snapshot(self) -> None:
        try:
            agents = await asyncio.to_thread(self.provider.snapshot)
        except Exception as e:
            logger.error("stream_snapshot_failed", error=str(e))
            return
        if not self._closed:
            self._queue.put_nowait(StreamFrame(agents=agents))

    async def _debounced_emit(self) -> None:
        await asyncio.sleep(self.config.debounce_seconds)
        # Past the window: a new trigger starts a fresh one instead of cancelling this emit
        task = self._debounce_task
        self._debounce_task = None
        if task is not None:
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        await self._emit_snapshot()

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.poll_interval_seconds)
            await self._emit_snapshot()

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.heartbeat_interval_seconds)
            if not self._closed:
                self._queue.put_nowait(StreamFrame())


class ChangeNotifier:
    """Creates subscriptions and tracks the ones still open."""

    def __init__(
        self,
        provider: AgentStateProvider,
        config: StreamConfig | None = None,
        watcher_factory: WatcherFactory = FileWatcher,
    ):
        self.provider = provider
        self.config = config or StreamConfig()
        self._watcher_factory = watcher_factory
        self._subscriptions: set[AgentStreamSubscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> AgentStreamSubscription:
        """Create an unopened subscription; call ``open()`` or use ``async with``."""
        subscription = AgentStreamSubscription(
            self.provider,
            self.config,
            watcher_factory=self._watcher_factory,
            on_close=self._subscriptions.discard,
        )
        self._subscriptions.add(subscription)
        return subscription

    async def close_all(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.aclose()
