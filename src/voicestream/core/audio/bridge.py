"""
Thread-safe hand-off of audio chunks from a capture callback to asyncio.

The producer side (``send``/``finish``) never blocks and may run on any
thread, including before the consuming event loop exists. The consumer
side is a single async iterator that yields chunks in enqueue order and
stops once ``finish`` has been called and the queue is drained.
"""

import asyncio
import threading
from collections import deque
from typing import AsyncIterator, Deque, Optional


def _wake(waiter: "asyncio.Future[None]") -> None:
    if not waiter.done():
        waiter.set_result(None)


class AudioChunkBridge:

    def __init__(self):
        self._chunks: Deque[bytes] = deque()
        self._lock = threading.Lock()
        self._finished = False
        self._waiter: Optional[asyncio.Future] = None
        self._waiter_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_finished(self) -> bool:
        return self._finished

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._chunks)

    def send(self, chunk: bytes) -> bool:
        """
        Queue a chunk for the consumer.

        Returns:
            False if the bridge is already finished and the chunk was dropped.
        """
        with self._lock:
            if self._finished:
                return False
            self._chunks.append(bytes(chunk))
            self._notify_locked()
        return True

    def finish(self) -> None:
        """Mark end of input. Safe to call repeatedly."""
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._notify_locked()

    def _notify_locked(self) -> None:
        waiter, loop = self._waiter, self._waiter_loop
        if waiter is None or loop is None:
            return
        self._waiter = None
        self._waiter_loop = None
        if not loop.is_closed():
            loop.call_soon_threadsafe(_wake, waiter)

    async def get(self) -> Optional[bytes]:
        """Wait for the next chunk. Returns None once finished and drained."""
        loop = asyncio.get_running_loop()
        while True:
            with self._lock:
                if self._chunks:
                    return self._chunks.popleft()
                if self._finished:
                    return None
                waiter = loop.create_future()
                self._waiter = waiter
                self._waiter_loop = loop

            try:
                await waiter
            finally:
                with self._lock:
                    if self._waiter is waiter:
                        self._waiter = None
                        self._waiter_loop = None

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.get()
        if chunk is None:
            raise StopAsyncIteration
        return chunk
