"""Checkpoint stream and session heartbeat."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from loguru import logger

from lib.harvest.models import Checkpoint


DEFAULT_CAPACITY = 100
HEARTBEAT_INTERVAL = 30.0


class CheckpointStream:
    """Bounded, append-only stream of stage checkpoints.

    Producers never block: when the buffer is full the oldest event is
    dropped to make room. ``dropped`` counts evictions.

    Usage:
        stream = CheckpointStream(capacity=100)
        stream.emit("Houston", Stage.STARTING)

        async for checkpoint in stream:
            ...
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._clock = clock
        self._queue: asyncio.Queue[Checkpoint] = asyncio.Queue(maxsize=capacity)
        self.dropped = 0
        self.emitted = 0

    def emit(self, query: str, stage: str) -> Checkpoint:
        """Append a checkpoint and log it."""
        checkpoint = Checkpoint(query=query, stage=stage, timestamp=self._clock())
        logger.info(f"[{query}] Checkpoint: {stage}")
        while True:
            try:
                self._queue.put_nowait(checkpoint)
                break
            except asyncio.QueueFull:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except asyncio.QueueEmpty:
                    pass
        self.emitted += 1
        return checkpoint

    async def get(self) -> Checkpoint:
        """Wait for the next checkpoint."""
        return await self._queue.get()

    def drain(self) -> List[Checkpoint]:
        """Return every buffered checkpoint without waiting."""
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return items

    def __len__(self) -> int:
        return self._queue.qsize()

    def __aiter__(self) -> AsyncIterator[Checkpoint]:
        return self

    async def __anext__(self) -> Checkpoint:
        return await self.get()


@asynccontextmanager
async def heartbeat(
    label: str,
    interval: float = HEARTBEAT_INTERVAL,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_beat: Optional[Callable[[int], None]] = None,
):
    """Log a liveness line every ``interval`` seconds while the block runs.

    The beat task is cancelled and awaited on every exit path.
    """
    async def _beat():
        beats = 0
        while True:
            await sleep(interval)
            beats += 1
            logger.info(f"[{label}] Still scraping...")
            if on_beat:
                on_beat(beats)

    task = asyncio.create_task(_beat(), name=f"heartbeat:{label}")
    try:
        yield task
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
