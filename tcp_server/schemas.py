"""
Records decoded from tracker frames
"""
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union

from pydantic import BaseModel, Field, field_serializer


def iso_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 in UTC with a Z suffix, e.g. 2025-01-01T12:00:00.000Z"""
    if value is None:
        return None
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S") + f".{value.microsecond // 1000:03d}Z"


class TrackerRecordBase(BaseModel):
    device_id: str = Field(alias="deviceId")
    vendor: str
    cmd: str

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    def to_json_dict(self) -> Dict[str, Any]:
        """Representation used by the position log, the API and the store"""
        return self.model_dump(mode="json", by_alias=True)


class EventRecord(TrackerRecordBase):
    """Non-positional frame (heartbeat, alarm, short payload...)"""
    raw: str


class PositionRecord(TrackerRecordBase):
    time: Optional[datetime] = None
    valid: bool = False
    lat: Optional[float] = None
    lon: Optional[float] = None
    speed_kph: Optional[float] = Field(default=None, alias="speedKph")
    course: Optional[float] = None
    raw: str
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="receivedAt")

    @field_serializer("time", "received_at")
    def _serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return iso_utc(value)


TrackerRecord = Union[PositionRecord, EventRecord]
