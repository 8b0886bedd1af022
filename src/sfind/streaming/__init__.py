"""Windowed streaming over a block-data provider.

This package provides:
- Stream message decoding (NewBlock / EndOfWindow / EndOfStream)
- WindowedStreamReader: transparent window refill over an endpoint session
"""

from sfind.streaming.reader import ReaderState, WindowedStreamReader
from sfind.streaming.wire import EndOfStream, EndOfWindow, NewBlock, decode_message

__all__ = [
    "ReaderState",
    "WindowedStreamReader",
    "EndOfStream",
    "EndOfWindow",
    "NewBlock",
    "decode_message",
]
