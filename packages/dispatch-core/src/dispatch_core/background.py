"""
Event loop running on a daemon thread.

Producers may call the dispatcher from plain threads or executor workers that
have no event loop of their own. Readers started from such callers run here.
The loop is created on first use and torn down with stop().
"""

import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


class BackgroundLoop:
    """
    Lazily started event loop on its own daemon thread.

    Example:
        background = BackgroundLoop()
        loop = background.get()          # starts the thread on first call
        asyncio.run_coroutine_threadsafe(work(), loop)
        await background.stop()
    """

    def __init__(self, name: str = "dispatch-pollers") -> None:
        self.name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        """Whether the loop thread has been started and not yet stopped."""
        return self._thread is not None and self._thread.is_alive()

    def get(self) -> asyncio.AbstractEventLoop:
        """Return the loop, starting its thread if needed."""
        with self._lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(target=loop.run_forever, name=self.name, daemon=True)
                thread.start()
                self._loop, self._thread = loop, thread
                logger.debug(f"Started background event loop thread {self.name}")
            return self._loop

    async def stop(self) -> None:
        """
        Stop the loop and join its thread.

        Idempotent. Must not be awaited from the background loop itself.
        """
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None:
            return

        loop.call_soon_threadsafe(loop.stop)
        await asyncio.to_thread(thread.join)
        loop.close()
        logger.debug(f"Stopped background event loop thread {self.name}")

