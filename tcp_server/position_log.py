"""
Append-only JSON Lines log of accepted positions
"""
import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

from tcp_server.schemas import PositionRecord

logger = logging.getLogger(__name__)

FLUSH_TIMEOUT = 5.0  # Seconds to drain pending lines on shutdown


class PositionLog:
    """
    Single writer task behind a bounded queue. The read loop only enqueues;
    one writer means lines are never interleaved.
    """

    def __init__(self, path: str, queue_size: int = 10000):
        self.path = path
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.writer_task: Optional[asyncio.Task] = None
        self.stats = {
            'written': 0,
            'failed': 0,
            'dropped': 0,
        }

    async def start(self):
        """Create the log directory and start the writer. Directory errors are fatal."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        self.writer_task = asyncio.create_task(self._writer_loop())
        logger.info(f"Appending JSON lines to: {self.path}")

    async def stop(self):
        """Flush what is queued (bounded wait) and stop the writer"""
        if not self.writer_task:
            return
        try:
            await asyncio.wait_for(self.queue.join(), timeout=FLUSH_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Position log stopped with {self.queue.qsize()} lines unwritten")
        self.writer_task.cancel()
        try:
            await self.writer_task
        except asyncio.CancelledError:
            pass
        self.writer_task = None

    def append(self, record: PositionRecord) -> bool:
        """Queue one record for writing without waiting for the disk"""
        line = json.dumps(record.to_json_dict()) + '\n'
        try:
            self.queue.put_nowait(line)
            return True
        except asyncio.QueueFull:
            self.stats['dropped'] += 1
            logger.warning(f"Position log queue full, dropping record for {record.device_id}")
            return False

    def _write_line(self, line: str):
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(line)

    async def _writer_loop(self):
        while True:
            line = await self.queue.get()
            try:
                await asyncio.to_thread(self._write_line, line)
                self.stats['written'] += 1
            except OSError as e:
                self.stats['failed'] += 1
                logger.error(f"File write error: {e}")
            finally:
                self.queue.task_done()

    def get_stats(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'pending': self.queue.qsize(),
            **self.stats,
        }
