"""
GPS Tracker TCP Server
Receives TK905B watch protocol frames and feeds them to the ingestion pipeline
"""
import asyncio
import codecs
import logging
import socket
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from tcp_server.framing import extract_frames
from tcp_server.pipeline import IngestPipeline

logger = logging.getLogger(__name__)

STATE_OPEN = 'OPEN'
STATE_CLOSED = 'CLOSED'

DEFAULT_MAX_BUFFER_SIZE = 8192
DEFAULT_MAX_CONNECTIONS = 1000
DEFAULT_CONNECTION_TIMEOUT = 300
TIMEOUT_CHECK_INTERVAL = 30


class GPSClientProtocol(asyncio.Protocol):
    """One tracker connection: buffer, extract frames, route them in order"""

    def __init__(self, server: "GPSTrackerTCPServer"):
        self.server = server
        self.transport = None
        self.peername = None
        self.conn_id = None
        self.state = STATE_CLOSED
        self.device_id = None
        self.buffer = ""
        self.decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self.last_activity = time.time()
        self.frame_count = 0
        self.timeout_task = None

    def connection_made(self, transport):
        """Handle new connection"""
        try:
            self.transport = transport
            self.peername = transport.get_extra_info('peername')
            self.conn_id = f"{self.peername}_{time.time()}"

            if len(self.server.active_connections) >= self.server.max_connections:
                logger.warning(f"Max connections reached, rejecting {self.peername}")
                transport.close()
                return

            self.state = STATE_OPEN
            self.server.active_connections[self.conn_id] = self
            self.server.stats['connections_total'] += 1

            sock = transport.get_extra_info('socket')
            if sock is not None:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

            logger.info(f"[TCP] Connection from {self.peername} (total: {len(self.server.active_connections)})")

            if self.server.connection_timeout:
                self.timeout_task = asyncio.create_task(self._monitor_timeout())

        except Exception as e:
            logger.error(f"Error in connection_made: {e}")
            transport.close()

    def connection_lost(self, exc):
        """Handle connection loss; any partial frame is discarded"""
        try:
            if exc:
                logger.info(f"[TCP] Closed {self.peername}: {exc}")
            else:
                logger.info(f"[TCP] Closed {self.peername}")

            if self.timeout_task:
                self.timeout_task.cancel()

            self.server.active_connections.pop(self.conn_id, None)

        except Exception as e:
            logger.error(f"Error in connection_lost: {e}")
        finally:
            self.state = STATE_CLOSED
            self.buffer = ""

    def data_received(self, data: bytes):
        """Handle incoming data from GPS tracker"""
        if self.state != STATE_OPEN:
            return
        try:
            self.last_activity = time.time()
            self.buffer += self.decoder.decode(data)

            frames, self.buffer = extract_frames(self.buffer)
            for frame in frames:
                self.frame_count += 1
                self._route(frame)

            if len(self.buffer) > self.server.max_buffer_size:
                logger.warning(f"Buffer overflow from {self.peername} "
                               f"({len(self.buffer)} chars without a frame), closing connection")
                self.server.stats['buffer_overflows'] += 1
                self._close()

        except Exception as e:
            logger.error(f"Error in data_received from {self.peername}: {e}")
            self._close()

    def _route(self, frame: str):
        try:
            result = self.server.pipeline.process_frame(frame)
        except Exception as e:
            logger.error(f"Error processing frame from {self.peername}: {e} ({frame[:100]})")
            return

        if result.device_id:
            if self.device_id and self.device_id != result.device_id:
                logger.warning(f"Device ID changed on {self.peername}: {self.device_id} -> {result.device_id}")
            self.device_id = result.device_id

    def _close(self):
        self.state = STATE_CLOSED
        self.buffer = ""
        if self.transport and not self.transport.is_closing():
            self.transport.close()

    async def _monitor_timeout(self):
        """Close connections that stay silent for too long"""
        try:
            interval = min(TIMEOUT_CHECK_INTERVAL, self.server.connection_timeout)
            while True:
                await asyncio.sleep(interval)

                if time.time() - self.last_activity > self.server.connection_timeout:
                    logger.warning(f"Connection timeout for {self.peername}")
                    self._close()
                    break

        except asyncio.CancelledError:
            pass


class GPSTrackerTCPServer:
    """TCP server for GPS trackers"""

    def __init__(self, pipeline: IngestPipeline, host: str = '0.0.0.0', port: int = 5093,
                 max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE,
                 max_connections: int = DEFAULT_MAX_CONNECTIONS,
                 connection_timeout: int = DEFAULT_CONNECTION_TIMEOUT):
        self.pipeline = pipeline
        self.host = host
        self.port = port
        self.max_buffer_size = max_buffer_size
        self.max_connections = max_connections
        self.connection_timeout = connection_timeout
        self.server: Optional[asyncio.AbstractServer] = None
        self.active_connections: Dict[str, GPSClientProtocol] = {}
        self.stats = {
            'start_time': None,
            'connections_total': 0,
            'buffer_overflows': 0,
        }
        self.shutdown_event = asyncio.Event()

    async def listen(self):
        """Bind the listening socket. Raises if the port cannot be bound."""
        loop = asyncio.get_running_loop()
        self.server = await loop.create_server(
            lambda: GPSClientProtocol(self),
            self.host,
            self.port,
            reuse_address=True
        )
        self.stats['start_time'] = datetime.now()

        sockets = self.server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]

        logger.info(f"[TCP] Listening on {self.host}:{self.port}")
        logger.info(f"  - Max connections: {self.max_connections}")
        logger.info(f"  - Connection timeout: {self.connection_timeout}s")
        logger.info(f"  - Max buffer: {self.max_buffer_size} chars")

    async def start(self):
        """Bind (if needed) and serve until shutdown() is called"""
        if not self.server:
            await self.listen()

        async with self.server:
            await self.shutdown_event.wait()

    async def shutdown(self):
        """Graceful shutdown"""
        logger.info("Shutting down GPS TCP Server...")

        for conn in list(self.active_connections.values()):
            conn._close()

        if self.server:
            self.server.close()
            await self.server.wait_closed()

        self.shutdown_event.set()
        logger.info("GPS TCP Server stopped")

    def get_status(self) -> Dict[str, Any]:
        """Get detailed server status"""
        uptime = datetime.now() - self.stats['start_time'] if self.stats['start_time'] else timedelta(0)

        return {
            'running': self.server is not None and self.server.is_serving(),
            'host': self.host,
            'port': self.port,
            'uptime': str(uptime),
            'active_connections': len(self.active_connections),
            'total_connections': self.stats['connections_total'],
            'buffer_overflows': self.stats['buffer_overflows'],
            'pipeline': self.pipeline.get_stats(),
            'connections': [
                {
                    'id': conn_id,
                    'device_id': conn.device_id,
                    'peername': str(conn.peername),
                    'frames': conn.frame_count,
                    'last_activity': datetime.fromtimestamp(conn.last_activity).isoformat()
                }
                for conn_id, conn in self.active_connections.items()
            ]
        }
