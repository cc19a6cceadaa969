"""
SSE (Server-Sent Events) progress sink.

Bridges the sync engine's progress callback with FastAPI's StreamingResponse.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Dict

from .models import SyncRunResult
from .progress import ProgressEvent


class SSEProgressReporter:
    """
    Progress sink that pushes events to an asyncio.Queue for SSE streaming.

    Usage:
        reporter = SSEProgressReporter()
        result = await engine.sync(source, target, on_progress=reporter)
        reporter.report_done(result)
        reporter.signal_end()

        # In the response generator:
        async for chunk in reporter.stream():
            yield chunk
    """

    def __init__(self, queue: asyncio.Queue | None = None):
        self.queue = queue if queue is not None else asyncio.Queue()

    def __call__(self, event: ProgressEvent) -> None:
        # put_nowait: the engine must never wait on a slow client
        self.queue.put_nowait({"event": "progress", "data": event.to_dict()})

    def report_error(self, message: str) -> None:
        self.queue.put_nowait({"event": "error", "data": {"message": message}})

    def report_done(self, result: SyncRunResult) -> None:
        self.queue.put_nowait({"event": "done", "data": result.to_dict()})

    def signal_end(self) -> None:
        self.queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[str]:
        """Yield SSE-formatted chunks until signal_end()."""
        while True:
            item = await self.queue.get()
            if item is None:
                break
            yield format_sse(item["event"], item["data"])


def format_sse(event: str, data: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"
