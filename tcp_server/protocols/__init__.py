"""
GPS Tracker Protocol Decoding
"""
from .normalize import parse_float, signed_coord, to_utc_datetime
from .tk905b import DecodeResult, TK905BDecoder, decode_frame, tk905b_decoder


__all__ = [
    'DecodeResult',
    'TK905BDecoder',
    'tk905b_decoder',
    'decode_frame',
    'parse_float',
    'signed_coord',
    'to_utc_datetime',
]
