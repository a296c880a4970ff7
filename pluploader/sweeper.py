import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from .models import UploadTable

logger = logging.getLogger(__name__)

class StaleUploadSweeper:
    """Periodically evicts pending uploads that stopped receiving chunks."""

    def __init__(self, table: UploadTable, interval: float = 300, stale_after: float = 300):
        self.table = table
        self.interval = interval
        self.stale_after = stale_after
        self._task: Optional[asyncio.Task] = None

    def sweep(self, now: Optional[datetime] = None) -> int:
        cutoff = (now or self.table.clock()) - timedelta(seconds=self.stale_after)
        evicted = 0
        for identity in self.table.snapshot_identities():
            upload = self.table.get(identity)
            if upload is None or upload.last_updated > cutoff:
                continue
            self.table.delete(identity)
            evicted += 1

        if evicted:
            logger.info(f"Evicted {evicted} stale upload(s), {len(self.table)} still pending")
        return evicted

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Stale upload sweep failed")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Stale upload sweeper started (every {self.interval}s, window {self.stale_after}s)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stale upload sweeper stopped")
