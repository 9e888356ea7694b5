from __future__ import annotations

import asyncio
import sys
from typing import TextIO


class WaitIndicator:
    """Animated "Planning..." line shown while the first reply delta is on its way.

    Runs as a task on the console's event loop, so it must be started from a
    coroutine. ``stop`` is idempotent and leaves the cursor right after ``prefix``.
    """

    def __init__(
        self,
        prefix: str = "",
        label: str = "Planning",
        *,
        out: TextIO | None = None,
        interval: float = 0.25,
    ):
        self._prefix = prefix
        self._label = label
        self._out = out if out is not None else sys.stdout
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._animate())

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        self._write(f"\r{self._prefix}{' ' * (len(self._label) + 3)}\r{self._prefix}")

    async def _animate(self) -> None:
        dots = 0
        while True:
            self._write(f"\r{self._prefix}{self._label}{'.' * dots:<3}")
            dots = (dots + 1) % 4
            await asyncio.sleep(self._interval)

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()
