"""
Async-to-sync bridge for Celery tasks.

Sync runs are coroutines (httpx.AsyncClient underneath); Celery tasks are
plain functions.
"""

import asyncio
import logging
from typing import Any, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run ``coro`` on a fresh event loop and tear the loop down cleanly.

    Pending tasks are cancelled and async generators shut down before the
    loop closes, so httpx transports do not hit "Event loop is closed".
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        try:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
        except Exception as e:
            logger.debug(f"Event loop cleanup failed: {e}")
        finally:
            asyncio.set_event_loop(None)
            loop.close()
