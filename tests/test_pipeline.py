from __future__ import annotations

from tcp_server.device_store import DeviceStateStore
from tcp_server.pipeline import (
    OUTCOME_DROPPED,
    OUTCOME_EVENT,
    OUTCOME_FORWARDED,
    OUTCOME_SKIPPED,
    IngestPipeline,
)
from tcp_server.position_filter import PositionPolicy

VALID_FIX = "[SG*123456*XX*GPS,010125,120000,A,22.5,N,114.1,E,36.0,90]"
INVALID_FIX = "[SG*123456*XX*GPS,010125,120010,V,22.6,N,114.2,E,10.0,45]"
ZERO_FIX = "[SG*123456*XX*GPS,010125,120020,V,0,N,0,E,0,0]"
HEARTBEAT = "[SG*123456*0008*LK,0,0,100]"


class RecordingLog:
    def __init__(self):
        self.records = []

    def append(self, record):
        self.records.append(record)
        return True


class RecordingForwarder:
    def __init__(self):
        self.records = []

    def submit(self, record):
        self.records.append(record)
        return True


def _pipeline(**policy):
    store = DeviceStateStore()
    log = RecordingLog()
    forwarder = RecordingForwarder()
    pipeline = IngestPipeline(store, PositionPolicy(**policy), position_log=log, forwarder=forwarder)
    return pipeline, store, log, forwarder


def test_valid_fix_is_stored_logged_and_forwarded() -> None:
    pipeline, store, log, forwarder = _pipeline()

    result = pipeline.process_frame(VALID_FIX)

    assert result.outcome == OUTCOME_FORWARDED
    assert result.device_id == "123456"
    entry = store.get("123456")
    assert entry["lat"] == 22.5
    assert entry["lon"] == 114.1
    assert [r.lat for r in log.records] == [22.5]
    assert [r.lat for r in forwarder.records] == [22.5]


def test_invalid_fix_not_forwarded_when_only_valid() -> None:
    pipeline, store, log, forwarder = _pipeline(forward_only_valid=True)

    assert pipeline.process_frame(INVALID_FIX).outcome == OUTCOME_SKIPPED
    assert store.get("123456")["valid"] is False
    assert len(log.records) == 1
    assert forwarder.records == []


def test_invalid_fix_forwarded_when_policy_off() -> None:
    pipeline, _, _, forwarder = _pipeline(forward_only_valid=False)

    assert pipeline.process_frame(INVALID_FIX).outcome == OUTCOME_FORWARDED
    assert len(forwarder.records) == 1


def test_forwarding_disabled_still_stores_and_logs() -> None:
    pipeline, store, log, forwarder = _pipeline(forward_enabled=False)

    assert pipeline.process_frame(VALID_FIX).outcome == OUTCOME_SKIPPED
    assert "123456" in store
    assert len(log.records) == 1
    assert forwarder.records == []


def test_zero_coordinates_excluded_by_default() -> None:
    pipeline, store, log, forwarder = _pipeline(forward_only_valid=False)

    assert pipeline.process_frame(ZERO_FIX).outcome == OUTCOME_EVENT
    assert set(store.get("123456")) == {"lastEvent"}
    assert store.get("123456")["lastEvent"]["lat"] == 0
    assert log.records == []
    assert forwarder.records == []


def test_zero_coordinates_included_when_allowed() -> None:
    pipeline, store, log, forwarder = _pipeline(forward_only_valid=False, allow_zero_coords=True)

    assert pipeline.process_frame(ZERO_FIX).outcome == OUTCOME_FORWARDED
    assert store.get("123456")["lat"] == 0
    assert len(log.records) == 1
    assert len(forwarder.records) == 1


def test_event_after_position_is_merged() -> None:
    pipeline, store, _, _ = _pipeline()

    pipeline.process_frame(VALID_FIX)
    assert pipeline.process_frame(HEARTBEAT).outcome == OUTCOME_EVENT

    entry = store.get("123456")
    assert entry["lat"] == 22.5
    assert entry["time"] == "2025-01-01T12:00:00.000Z"
    assert entry["lastEvent"] == {
        "deviceId": "123456",
        "vendor": "SG",
        "cmd": "LK",
        "raw": "LK,0,0,100",
    }


def test_new_position_replaces_last_event() -> None:
    pipeline, store, _, _ = _pipeline(forward_only_valid=False)

    pipeline.process_frame(HEARTBEAT)
    pipeline.process_frame(INVALID_FIX)

    entry = store.get("123456")
    assert "lastEvent" not in entry
    assert entry["lat"] == 22.6


def test_malformed_frame_is_dropped_without_side_effects() -> None:
    pipeline, store, log, forwarder = _pipeline()

    result = pipeline.process_frame("[garbage]")

    assert result.outcome == OUTCOME_DROPPED
    assert result.device_id is None
    assert len(store) == 0
    assert log.records == [] and forwarder.records == []
    assert pipeline.get_stats()["decode_failures"] == 1


def test_stored_fields_match_frame() -> None:
    pipeline, store, _, _ = _pipeline()
    pipeline.process_frame(VALID_FIX)

    entry = store.get("123456")
    csv = VALID_FIX[1:-1].split("*")[3].split(",")[1:]
    assert entry["valid"] is (csv[2] == "A")
    assert entry["lat"] == float(csv[3])
    assert entry["lon"] == float(csv[5])
    assert entry["speedKph"] == float(csv[7])
    assert entry["course"] == float(csv[8])
