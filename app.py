import asyncio
import datetime
import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.devices import router as devices_router
from api.gps_tcp_status import router as gps_tcp_status_router
from config import settings
from logs.logconfig import configure_logging
from rate_limiter import rate_limiter
from tcp_server.device_store import device_store
from tcp_server.forwarder import PositionForwarder
from tcp_server.gps_tcp_server import GPSTrackerTCPServer
from tcp_server.pipeline import IngestPipeline
from tcp_server.position_filter import PositionPolicy
from tcp_server.position_log import PositionLog


session_id_run = str(uuid.uuid4())

# Initialize logging at the start of the application
configure_logging(session_id_run=session_id_run)

logger = logging.getLogger(__name__)

system_startup_time = datetime.datetime.now()


@asynccontextmanager
async def lifespan(app):
    # Position log directory must be writable before trackers are accepted
    position_log = PositionLog(settings.DATA_FILE, queue_size=settings.LOG_QUEUE_SIZE)
    await position_log.start()
    app.state.position_log = position_log

    forwarder = None
    if settings.FORWARD_ENABLED:
        forwarder = PositionForwarder(
            settings.FORWARD_URL,
            timeout_ms=settings.FORWARD_TIMEOUT_MS,
            workers=settings.FORWARD_WORKERS,
            queue_size=settings.FORWARD_QUEUE_SIZE
        )
        await forwarder.start()
    app.state.forwarder = forwarder

    policy = PositionPolicy.from_settings(settings)
    logger.info(f"[FWD] Forwarding: {'ENABLED' if settings.FORWARD_ENABLED else 'DISABLED'} -> {settings.FORWARD_URL}")
    logger.info(f"[FWD] Policy: ONLY_VALID={policy.forward_only_valid}, ALLOW_ZERO_COORDS={policy.allow_zero_coords}")

    pipeline = IngestPipeline(device_store, policy, position_log=position_log, forwarder=forwarder)

    tcp_server = None
    tcp_server_task = None
    if settings.GPS_TCP_ENABLED:
        tcp_server = GPSTrackerTCPServer(
            pipeline,
            host=settings.GPS_TCP_HOST,
            port=settings.GPS_TCP_PORT,
            max_buffer_size=settings.MAX_BUFFER_SIZE,
            max_connections=settings.MAX_CONNECTIONS,
            connection_timeout=settings.CONNECTION_TIMEOUT
        )
        # Bind errors abort startup
        await tcp_server.listen()
        tcp_server_task = asyncio.create_task(tcp_server.start())
        app.state.tcp_server = tcp_server
    else:
        logger.info("GPS TCP Server is disabled in configuration")

    yield

    logger.info("Starting application shutdown...")

    if tcp_server:
        try:
            await tcp_server.shutdown()
        except Exception as e:
            logger.error(f"Error stopping GPS TCP Server: {e}")

        tcp_server_task.cancel()
        try:
            await tcp_server_task
        except asyncio.CancelledError:
            pass
        app.state.tcp_server = None

    if forwarder:
        await forwarder.stop()

    await position_log.stop()
    logger.info("Application shutdown completed")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_request(request: Request, call_next):
    logger.debug(f"Incoming request: {request.method} {request.url}")
    response = await call_next(request)
    logger.debug(f"Outgoing response: {response.status_code}")
    return response


app.include_router(devices_router, tags=['Devices'])
app.include_router(gps_tcp_status_router, tags=['GPS TCP Server'])

# Attach the rate limiter as a middleware
app.state.limiter = rate_limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.get('/health')
async def health():
    now = datetime.datetime.now()
    uptime = now - system_startup_time

    response = {
        'status': 'healthy',
        'system_startup_time': system_startup_time.isoformat(),
        'current_time': now.isoformat(),
        'uptime': str(uptime),
        'devices': len(device_store),
    }

    tcp_server = getattr(app.state, 'tcp_server', None)
    if settings.GPS_TCP_ENABLED:
        if tcp_server:
            status = tcp_server.get_status()
            response['gps_tcp_server'] = {
                'running': status['running'],
                'port': status['port'],
                'active_connections': status['active_connections'],
                'pipeline': status['pipeline'],
            }
        else:
            response['status'] = 'unhealthy'
            response['gps_tcp_server'] = {
                'running': False,
                'message': 'Server not initialized'
            }

    forwarder = getattr(app.state, 'forwarder', None)
    if forwarder:
        response['forwarder'] = forwarder.get_stats()

    position_log = getattr(app.state, 'position_log', None)
    if position_log:
        response['position_log'] = position_log.get_stats()

    status_code = 200 if response['status'] == 'healthy' else 503
    return JSONResponse(content=response, status_code=status_code)


if __name__ == "__main__":
    uvicorn.run("app:app", host=settings.HTTP_HOST, port=settings.HTTP_PORT)
