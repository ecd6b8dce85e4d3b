"""Interval poller that mirrors the store's message log into a history transcript."""

import asyncio
import logging
from typing import Optional

from .config import DEFAULT_LOG_DEPTH, DEFAULT_POLL_INTERVAL
from .render import render_message
from .store import MessageStore

logger = logging.getLogger(__name__)


class HistorySynchronizer:
    """Append new store messages to ``output`` on a fixed interval.

    ``rendered_count`` is the number of messages already rendered; it only
    ever grows. Each tick fetches the most recent ``depth`` messages and
    appends, in store order, those stamped later than the last rendered
    message, so repeated, overlapping or sliding fetches never duplicate or
    skip lines. Logs whose records carry no ``time`` fall back to appending
    the entries past ``rendered_count``; that path assumes the log is
    append-only and shorter than ``depth``.

    Polling starts on construction (``autostart=True``), which requires a
    running event loop. :meth:`stop` cancels it.
    """

    def __init__(
        self,
        store: MessageStore,
        output: Optional[list] = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        ps1: str = "$",
        location: str = "",
        depth: int = DEFAULT_LOG_DEPTH,
        autostart: bool = True,
    ):
        self.store = store
        self.output = output if output is not None else []
        self.interval = interval
        self.ps1 = ps1
        self.location = location
        self.depth = depth
        self.rendered_count = 0
        self.last_time = None  # time of the newest rendered message
        self._runner: Optional[asyncio.Task] = None
        self._ticks: set[asyncio.Task] = set()
        if autostart:
            self.start()

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def start(self) -> "HistorySynchronizer":
        if not self.running:
            self._runner = asyncio.get_running_loop().create_task(self._run())
        return self

    def stop(self) -> None:
        """Cancel the poll loop and any fetch still in flight."""
        if self._runner is not None:
            self._runner.cancel()
            self._runner = None
        for task in list(self._ticks):
            task.cancel()
        self._ticks.clear()

    async def tick(self) -> int:
        """Fetch once and append unseen messages. Returns how many were added."""
        try:
            logs = await self.store.fetch_recent(self.depth)
        except Exception as e:
            logger.warning("History poll failed, retrying next tick: %s", e)
            return 0

        # Read the merge state after the await: another tick may have advanced it.
        added = 0
        if logs and all(m.time is not None for m in logs):
            for message in logs:
                if self.last_time is not None and message.time <= self.last_time:
                    continue
                self._render(message)
                self.last_time = message.time
                added += 1
        else:
            while len(logs) > self.rendered_count:
                self._render(logs[self.rendered_count])
                added += 1
        if added:
            logger.debug("Rendered %d new message(s), %d total", added, self.rendered_count)
        return added

    def _render(self, message) -> None:
        self.output.append(render_message(message, self.ps1, self.location))
        self.rendered_count += 1

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.interval)
            # Ticks are not awaited here: a slow fetch must not delay the next one.
            task = loop.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
