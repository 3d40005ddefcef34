"""One-way progress channel from a remix job to whoever is listening.

The producer never waits on the consumer: the queue is unbounded and a
consumer that goes away simply stops draining it. Exactly one terminal
event (done or error) closes the channel and it is always the last one.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from remix.errors import RemixError


class StreamInterruptedError(RemixError):
    """Event stream ended without a done/error event."""


def is_terminal(event: dict[str, Any]) -> bool:
    return "done" in event or "error" in event


def encode_sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


class RemixEventStream:
    def __init__(self):
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._terminal: dict[str, Any] | None = None

    @property
    def closed(self) -> bool:
        return self._terminal is not None

    @property
    def terminal(self) -> dict[str, Any] | None:
        return self._terminal

    def _put(self, event: dict[str, Any]) -> None:
        if self._terminal is not None:
            raise RuntimeError(f"event stream already closed with {self._terminal!r}")
        if is_terminal(event):
            self._terminal = event
        self._queue.put_nowait(event)

    def log(self, line: str) -> None:
        self._put({"log": line})

    def done(self) -> None:
        self._put({"done": True})

    def error(self, message: str) -> None:
        self._put({"error": message})

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield events in emission order, stopping after the terminal one."""
        while True:
            event = await self._queue.get()
            yield event
            if is_terminal(event):
                return

    async def sse(self) -> AsyncIterator[str]:
        async for event in self.events():
            yield encode_sse(event)


async def read_sse_events(lines: AsyncIterable[str]) -> AsyncIterator[dict[str, Any]]:
    """Client side: decode ``data:`` frames until the terminal event.

    A stream that ends before a done/error event is a failed remix, so it
    raises StreamInterruptedError instead of ending quietly.
    """
    async for line in lines:
        line = line.strip()
        if not line.startswith("data:"):
            continue
        event = json.loads(line.removeprefix("data:").strip())
        yield event
        if is_terminal(event):
            return
    raise StreamInterruptedError("Conexão encerrada antes do fim do remix")
