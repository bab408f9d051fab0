"""Blocking entry points backed by one persistent background event loop.

Qdrant and asyncpg clients are bound to the loop that created them, so every
synchronous call (build and routing alike) must run on the same loop.
"""

import asyncio
import threading
from typing import Any, Coroutine, Optional, TypeVar

from loguru import logger

T = TypeVar("T")

_loop: Optional[asyncio.AbstractEventLoop] = None
_thread: Optional[threading.Thread] = None
_lock = threading.Lock()


def get_sync_loop() -> asyncio.AbstractEventLoop:
    """Get or start the background loop used by blocking calls."""
    global _loop, _thread
    with _lock:
        if _loop is None or _loop.is_closed():
            loop = asyncio.new_event_loop()
            ready = threading.Event()

            def _runner() -> None:
                asyncio.set_event_loop(loop)
                ready.set()
                loop.run_forever()

            thread = threading.Thread(target=_runner, name="semroute-sync-loop", daemon=True)
            thread.start()
            ready.wait()
            _loop, _thread = loop, thread
            logger.debug("Started background event loop for blocking calls")
        return _loop


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a coroutine on the background loop and wait for its result.

    Raises:
        RuntimeError: If called from a coroutine already running on that loop.
    """
    loop = get_sync_loop()
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        coro.close()
        raise RuntimeError("run_sync cannot be called from the background loop; await the coroutine instead")
    return asyncio.run_coroutine_threadsafe(coro, loop).result()
