"""Background polling of the default symbols so quote history fills without traffic."""

import asyncio
import logging

from config import settings
from errors import DashboardError
from services.history import record_quotes
from services.quotes import get_quotes

logger = logging.getLogger(__name__)


class QuotePoller:
    def __init__(self, symbols: list[str], interval_seconds: int):
        self.symbols = symbols
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    async def poll_once(self) -> int:
        result = await get_quotes(self.symbols)
        if result["source"] != "live" or not settings.history_enabled:
            return 0
        return await record_quotes(result["quotes"])

    async def _run(self) -> None:
        while True:
            try:
                written = await self.poll_once()
                logger.info("Polled %d symbols, %d history rows written", len(self.symbols), written)
            except DashboardError as e:
                logger.warning("Quote polling failed: %s", e)
            except Exception:
                logger.exception("Unexpected error while polling quotes")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self._task is None:
            logger.info("Starting quote poller every %ds for %s", self.interval_seconds, self.symbols)
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
