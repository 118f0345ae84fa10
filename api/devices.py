"""
Read-only view of the latest state of every tracker
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from typing import Any, Dict
import logging

from tcp_server.device_store import device_store

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/")
async def root() -> Dict[str, Any]:
    """Liveness plus the number of trackers seen so far"""
    return {"ok": True, "devices": len(device_store)}


@router.get("/devices")
async def list_devices() -> Dict[str, Any]:
    """All current entries keyed by device id"""
    return device_store.snapshot()


@router.get("/devices/{device_id}")
async def get_device(device_id: str):
    entry = device_store.get(device_id)
    if entry is None:
        logger.debug(f"Lookup for unknown device {device_id}")
        return JSONResponse(content={"error": "unknown device"}, status_code=404)
    return entry
