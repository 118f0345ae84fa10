"""
Coordinate sanity and forwarding policy for decoded positions
"""
import math
from dataclasses import dataclass

from tcp_server.schemas import PositionRecord, TrackerRecord


@dataclass(frozen=True)
class PositionPolicy:
    forward_enabled: bool = True
    forward_only_valid: bool = True
    allow_zero_coords: bool = False

    @classmethod
    def from_settings(cls, settings) -> "PositionPolicy":
        return cls(
            forward_enabled=settings.FORWARD_ENABLED,
            forward_only_valid=settings.FORWARD_ONLY_VALID,
            allow_zero_coords=settings.FORWARD_ALLOW_ZERO_COORDS,
        )

    def has_usable_coords(self, record: TrackerRecord) -> bool:
        """
        Finite, in range and, unless allowed, not the (0, 0) no-fix sentinel.
        Event records never have usable coordinates.
        """
        if not isinstance(record, PositionRecord):
            return False
        lat, lon = record.lat, record.lon
        if lat is None or lon is None:
            return False
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return False
        if abs(lat) > 90 or abs(lon) > 180:
            return False
        if not self.allow_zero_coords and lat == 0 and lon == 0:
            return False
        return True

    def should_forward(self, record: PositionRecord) -> bool:
        """Forwarding decision for a position that already has usable coordinates"""
        if not self.forward_enabled:
            return False
        return not self.forward_only_valid or record.valid is True
