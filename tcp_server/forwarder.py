"""
Best-effort relay of accepted positions to an OsmAnd-style HTTP backend
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from tcp_server.schemas import PositionRecord, iso_utc

logger = logging.getLogger(__name__)

USER_AGENT = "tk905-forwarder/1.0"
KPH_TO_KNOTS = 0.539956803


class ForwardTimeout(Exception):
    """The backend did not answer within the forward timeout"""

    def __init__(self, device_id: str, timeout: float):
        super().__init__(f"forward for {device_id} timed out after {timeout:.1f}s")
        self.device_id = device_id
        self.timeout = timeout


def kph_to_knots(kph: float) -> float:
    return kph * KPH_TO_KNOTS


def _number(value: float) -> str:
    """Format like the backend expects: 90 rather than 90.0"""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def build_forward_params(record: PositionRecord) -> List[Tuple[str, str]]:
    """Query parameters for one forwarded position, in request order"""
    params = [
        ('id', str(record.device_id)),
        ('lat', _number(record.lat)),
        ('lon', _number(record.lon)),
    ]
    if record.time is not None:
        params.append(('timestamp', iso_utc(record.time)))
    if isinstance(record.valid, bool):
        params.append(('valid', 'true' if record.valid else 'false'))
    if record.speed_kph is not None:
        params.append(('speed', f"{kph_to_knots(record.speed_kph):.2f}"))
    if record.course is not None:
        params.append(('bearing', _number(record.course)))
    return params


class PositionForwarder:
    """
    Bounded queue consumed by a few worker tasks. submit() never waits;
    when the queue is full the position is dropped and logged.
    """

    def __init__(self, url: str, timeout_ms: int = 8000, workers: int = 4, queue_size: int = 1000):
        self.url = url
        self.timeout = timeout_ms / 1000.0
        self.worker_count = max(1, workers)
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.session: Optional[aiohttp.ClientSession] = None
        self.workers: List[asyncio.Task] = []
        self.stats = {
            'sent': 0,
            'failed': 0,
            'timeouts': 0,
            'dropped': 0,
        }

    async def start(self):
        """Open the shared HTTP session and start the workers"""
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={'User-Agent': USER_AGENT}
        )
        self.workers = [
            asyncio.create_task(self._worker_loop(i))
            for i in range(self.worker_count)
        ]
        logger.info(f"Forwarding to {self.url} ({self.worker_count} workers, timeout {self.timeout:.1f}s)")

    async def stop(self):
        """Cancel workers and close the session; queued positions are abandoned"""
        for task in self.workers:
            task.cancel()
        for task in self.workers:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.workers = []

        if self.session:
            await self.session.close()
            self.session = None

        if self.queue.qsize():
            logger.warning(f"Forwarder stopped with {self.queue.qsize()} positions not sent")

    def submit(self, record: PositionRecord) -> bool:
        """Hand a position to the workers without waiting"""
        try:
            self.queue.put_nowait(record)
            return True
        except asyncio.QueueFull:
            self.stats['dropped'] += 1
            logger.warning(f"Forward queue full, dropping position for {record.device_id}")
            return False

    async def _worker_loop(self, worker_id: int):
        logger.debug(f"Forward worker {worker_id} started")
        while True:
            record = await self.queue.get()
            try:
                await self.forward(record)
            except Exception as e:
                self.stats['failed'] += 1
                logger.error(f"[FWD] Worker {worker_id} error for {record.device_id}: {e}", exc_info=True)
            finally:
                self.queue.task_done()

    async def forward(self, record: PositionRecord) -> bool:
        """One GET to the backend. Failures are logged, never raised."""
        if not self.session:
            logger.error("Forwarder not started, position not sent")
            self.stats['failed'] += 1
            return False

        params = build_forward_params(record)
        try:
            try:
                async with self.session.get(self.url, params=params) as response:
                    if 200 <= response.status < 300:
                        self.stats['sent'] += 1
                        logger.debug(f"[FWD] OK {record.device_id} -> {response.url}")
                        return True

                    body = await response.text(errors='replace')
                    self.stats['failed'] += 1
                    logger.error(f"[FWD] HTTP {response.status} for {record.device_id}: {body[:200]}")
                    return False
            except asyncio.TimeoutError:
                raise ForwardTimeout(record.device_id, self.timeout)

        except ForwardTimeout as e:
            self.stats['timeouts'] += 1
            logger.warning(f"[FWD] {e}")
        except aiohttp.ClientError as e:
            self.stats['failed'] += 1
            logger.error(f"[FWD] Error for {record.device_id}: {e}")
        return False

    def get_stats(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'pending': self.queue.qsize(),
            **self.stats,
        }
