"""
Frame extraction for the bracket-delimited watch protocol
"""
from typing import List, Tuple

FRAME_START = '['
FRAME_END = ']'


def extract_frames(buffer: str) -> Tuple[List[str], str]:
    """
    Split a connection buffer into complete [..] frames and the tail to keep.

    Frames come out in the order their closing bracket appears. The tail is
    everything after the last ']' in the buffer, so an unterminated '[' (and
    anything that precedes it after the last frame) waits for the next read.
    Without any ']' the whole buffer is kept.
    """
    frames = []
    start = buffer.find(FRAME_START)
    while start != -1:
        end = buffer.find(FRAME_END, start + 1)
        if end == -1:
            break
        frames.append(buffer[start:end + 1])
        start = buffer.find(FRAME_START, end + 1)

    last_end = buffer.rfind(FRAME_END)
    remainder = buffer if last_end == -1 else buffer[last_end + 1:]
    return frames, remainder
