from __future__ import annotations

from config import Settings
from tcp_server.position_filter import PositionPolicy
from tcp_server.schemas import EventRecord, PositionRecord


def _position(lat, lon, valid: bool = True) -> PositionRecord:
    return PositionRecord(device_id="1", vendor="SG", cmd="UD", raw="UD", lat=lat, lon=lon, valid=valid)


def test_usable_coords() -> None:
    policy = PositionPolicy()

    assert policy.has_usable_coords(_position(22.5, 114.1))
    assert policy.has_usable_coords(_position(-90, 180))
    assert not policy.has_usable_coords(_position(90.01, 0.5))
    assert not policy.has_usable_coords(_position(1.0, -180.5))
    assert not policy.has_usable_coords(_position(None, 1.0))
    assert not policy.has_usable_coords(_position(float("inf"), 1.0))


def test_zero_sentinel_depends_on_config() -> None:
    assert not PositionPolicy(allow_zero_coords=False).has_usable_coords(_position(0.0, 0.0))
    assert PositionPolicy(allow_zero_coords=True).has_usable_coords(_position(0.0, 0.0))
    # only the exact pair is the sentinel
    assert PositionPolicy(allow_zero_coords=False).has_usable_coords(_position(0.0, 10.0))


def test_events_never_have_coords() -> None:
    event = EventRecord(device_id="1", vendor="SG", cmd="LK", raw="LK")
    assert not PositionPolicy(allow_zero_coords=True).has_usable_coords(event)


def test_forward_only_valid() -> None:
    invalid = _position(22.5, 114.1, valid=False)
    valid = _position(22.5, 114.1, valid=True)

    only_valid = PositionPolicy(forward_enabled=True, forward_only_valid=True)
    assert only_valid.should_forward(valid)
    assert not only_valid.should_forward(invalid)

    any_fix = PositionPolicy(forward_enabled=True, forward_only_valid=False)
    assert any_fix.should_forward(invalid)


def test_forwarding_disabled() -> None:
    policy = PositionPolicy(forward_enabled=False, forward_only_valid=False)
    assert not policy.should_forward(_position(22.5, 114.1))


def test_from_settings() -> None:
    settings = Settings(FORWARD_ENABLED=False, FORWARD_ONLY_VALID=False, FORWARD_ALLOW_ZERO_COORDS=True)
    policy = PositionPolicy.from_settings(settings)

    assert policy == PositionPolicy(forward_enabled=False, forward_only_valid=False, allow_zero_coords=True)
