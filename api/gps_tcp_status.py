"""
GPS TCP Server status endpoints
"""
import asyncio
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from datetime import datetime
import logging
from typing import Dict, Any
from config import settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/gps-tcp", tags=["GPS TCP Server"])

LOCAL_HOSTS = ('0.0.0.0', '', '::')


async def check_tcp_port(host: str, port: int, timeout: float = 5.0) -> bool:
    """Check if TCP port is open and accepting connections"""
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout
        )
        writer.close()
        await writer.wait_closed()
        return True
    except (asyncio.TimeoutError, ConnectionRefusedError, OSError):
        return False


@router.get("/status")
async def get_gps_tcp_status(request: Request) -> Dict[str, Any]:
    """Status of the in-process TCP server, forwarder and position log"""
    if not settings.GPS_TCP_ENABLED:
        return JSONResponse(
            content={"error": "GPS TCP Server is disabled in configuration"},
            status_code=404
        )

    tcp_server = getattr(request.app.state, 'tcp_server', None)
    if tcp_server is None:
        return JSONResponse(
            content={"error": "GPS TCP Server not initialized"},
            status_code=503
        )

    status = tcp_server.get_status()
    status['timestamp'] = datetime.now().isoformat()

    forwarder = getattr(request.app.state, 'forwarder', None)
    status['forwarder'] = forwarder.get_stats() if forwarder else {'enabled': False}

    position_log = getattr(request.app.state, 'position_log', None)
    if position_log:
        status['position_log'] = position_log.get_stats()

    return status


@router.get("/health")
async def check_gps_tcp_health(request: Request):
    """
    Health check for the GPS TCP listener
    Returns 200 if the port accepts connections, 503 if not
    """
    tcp_server = getattr(request.app.state, 'tcp_server', None)
    port = tcp_server.port if tcp_server else settings.GPS_TCP_PORT
    host = settings.GPS_TCP_HOST
    if host in LOCAL_HOSTS:
        host = '127.0.0.1'

    is_running = await check_tcp_port(host, port, timeout=3.0)

    if is_running:
        return {"status": "healthy", "timestamp": datetime.now().isoformat()}
    else:
        raise HTTPException(
            status_code=503,
            detail=f"GPS TCP Server not responding at {host}:{port}"
        )
