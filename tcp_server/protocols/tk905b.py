"""
TK905B Watch Protocol Decoder
Frame format: [VENDOR*DEVICE_ID*LENGTH*CMD,ddmmyy,hhmmss,A|V,lat,N|S,lon,E|W,speed,course,...]
"""
from typing import List, NamedTuple, Optional

from tcp_server.schemas import EventRecord, PositionRecord, TrackerRecord
from .normalize import parse_float, signed_coord, to_utc_datetime

HEADER_SEPARATOR = '*'
FIELD_SEPARATOR = ','
MIN_HEADER_PARTS = 4
POSITION_FIELDS = 9  # date, time, validity, lat, N/S, lon, E/W, speed, course


class DecodeResult(NamedTuple):
    """Outcome of decoding one frame: a record, or the reason there is none"""
    record: Optional[TrackerRecord] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.record is not None


class TK905BDecoder:
    """Decoder for the TK905B watch protocol (VENDOR*ID*LENGTH*DATA format)"""

    VALID_FIX = 'A'

    def decode(self, frame: str) -> DecodeResult:
        """Decode one bracketed frame; never raises"""
        if not frame or len(frame) < 2 or frame[0] != '[' or frame[-1] != ']':
            return DecodeResult(error="not a bracketed frame")

        parts = frame[1:-1].split(HEADER_SEPARATOR)
        if len(parts) < MIN_HEADER_PARTS:
            return DecodeResult(error=f"expected {MIN_HEADER_PARTS} header parts, got {len(parts)}")

        vendor = parts[0]
        device_id = parts[1]
        # parts[2] is the payload length, not used
        payload = HEADER_SEPARATOR.join(parts[3:])

        fields = payload.split(FIELD_SEPARATOR)
        cmd = fields[0]
        csv = fields[1:]

        if len(csv) < POSITION_FIELDS:
            return DecodeResult(record=EventRecord(
                device_id=device_id,
                vendor=vendor,
                cmd=cmd,
                raw=payload,
            ))

        return DecodeResult(record=self._parse_position(vendor, device_id, cmd, csv, payload))

    def _parse_position(self, vendor: str, device_id: str, cmd: str,
                        csv: List[str], payload: str) -> PositionRecord:
        """Interpret the first nine CSV fields; bad fields become None"""
        speed = parse_float(csv[7])
        if speed is not None and speed < 0:
            speed = None

        course = parse_float(csv[8])

        return PositionRecord(
            device_id=device_id,
            vendor=vendor,
            cmd=cmd,
            time=to_utc_datetime(csv[0], csv[1]),
            valid=csv[2] == self.VALID_FIX,
            lat=signed_coord(csv[3], csv[4]),
            lon=signed_coord(csv[5], csv[6]),
            speed_kph=speed,
            course=course,
            raw=payload,
        )


tk905b_decoder = TK905BDecoder()


def decode_frame(frame: str) -> DecodeResult:
    """Decode a TK905B frame with the shared decoder"""
    return tk905b_decoder.decode(frame)
