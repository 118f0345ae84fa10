from __future__ import annotations

from tcp_server.framing import extract_frames

STREAM = (
    "[SG*123456*0040*GPS,010125,120000,A,22.5,N,114.1,E,36.0,90]"
    "[3G*2256002206*0008*LK,0,0,100]"
    "noise"
    "[SG*123456*0040*GPS,010125,120005,V,22.6,N,114.2,E,0,180]"
)


def _feed(chunks: list[str]) -> list[str]:
    buffer = ""
    frames: list[str] = []
    for chunk in chunks:
        found, buffer = extract_frames(buffer + chunk)
        frames.extend(found)
    return frames


def test_single_frame_and_empty_tail() -> None:
    frames, rest = extract_frames("[A*1*0*LK]")

    assert frames == ["[A*1*0*LK]"]
    assert rest == ""


def test_batched_frames_come_out_in_order() -> None:
    frames, rest = extract_frames(STREAM)

    assert len(frames) == 3
    assert frames[0].startswith("[SG*123456")
    assert frames[1] == "[3G*2256002206*0008*LK,0,0,100]"
    assert "120005" in frames[2]
    assert rest == ""


def test_unterminated_frame_is_kept_for_next_read() -> None:
    frames, rest = extract_frames("[A*1*0*LK][A*1*0*UD,01")

    assert frames == ["[A*1*0*LK]"]
    assert rest == "[A*1*0*UD,01"


def test_text_between_last_frame_and_open_bracket_is_kept_once() -> None:
    frames, rest = extract_frames("[A*1*0*LK]junk[A*2")

    assert frames == ["[A*1*0*LK]"]
    assert rest == "junk[A*2"

    frames, rest = extract_frames(rest + "*0*LK]")
    assert frames == ["[A*2*0*LK]"]
    assert rest == ""


def test_no_brackets_keeps_whole_buffer() -> None:
    frames, rest = extract_frames("hello world")

    assert frames == []
    assert rest == "hello world"


def test_closing_bracket_without_opening_is_discarded() -> None:
    frames, rest = extract_frames("garbage]more")

    assert frames == []
    assert rest == "more"


def test_chunk_boundaries_do_not_change_frames() -> None:
    expected = _feed([STREAM])

    for size in (1, 2, 3, 7, 13, 50):
        chunks = [STREAM[i:i + size] for i in range(0, len(STREAM), size)]
        assert _feed(chunks) == expected

    # split right at the bracket boundaries
    cut = STREAM.index("][") + 1
    assert _feed([STREAM[:cut], STREAM[cut:]]) == expected
