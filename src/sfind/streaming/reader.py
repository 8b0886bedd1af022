"""Windowed stream reader.

Turns a sequence of fixed-size height windows into one ordered sequence of
`BlockEvent`s, refilling windows behind the consumer's back:

    INIT -> STREAMING -> (REFILL -> STREAMING)* -> CLOSED

- `end_of_window` moves to REFILL and opens [prev_end, prev_end + size).
- `end_of_stream` yields a single `StreamClosed` and moves to CLOSED.
- A window stream that stops without either message is a dropped connection.

Each request is seeded by height or by cursor, never both. In cursor mode
the most recent cursor seen is carried into every refill request.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from sfind.core.constants import DEFAULT_WINDOW_SIZE
from sfind.core.errors import EndpointConnectionError
from sfind.core.interfaces import IStreamEndpoint
from sfind.core.models import BlockEvent, BlockWindow, ResumeHint, StreamClosed, StreamRequest
from sfind.streaming.wire import EndOfStream, EndOfWindow, NewBlock, decode_message

logger = logging.getLogger(__name__)


class ReaderState(enum.Enum):
    INIT = "init"
    STREAMING = "streaming"
    REFILL = "refill"
    CLOSED = "closed"


class WindowedStreamReader:
    """Lazy, ordered block events over successive height windows.

    Parameters
    ----------
    endpoint : IStreamEndpoint
        Connected provider session.
    module_name : str
        Output module subscribed to.
    modules : list[dict]
        Module graph sent with every request.
    start_height : int
        First height of the initial window.
    window_size : int
        Span of each window.
    cursor : str | None
        When set, requests are seeded by this cursor instead of a height.
    """

    def __init__(
        self,
        endpoint: IStreamEndpoint,
        *,
        module_name: str,
        modules: list[dict],
        start_height: int,
        window_size: int = DEFAULT_WINDOW_SIZE,
        cursor: str | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.module_name = module_name
        self.modules = modules
        self.window = BlockWindow.starting_at(start_height, window_size)
        self.cursor = cursor
        self.use_cursor = cursor is not None
        self.state = ReaderState.INIT
        self.windows_opened = 0
        self.refills = 0

    def _resume_hint(self) -> ResumeHint:
        if self.use_cursor and self.cursor is not None:
            return ResumeHint.from_cursor(self.cursor)
        return ResumeHint.from_height(self.window.start)

    def _request(self) -> StreamRequest:
        return StreamRequest(
            window=self.window,
            output_module=self.module_name,
            modules=self.modules,
            resume=self._resume_hint(),
        )

    def _refill(self) -> None:
        self.state = ReaderState.REFILL
        self.window = self.window.next()
        self.refills += 1
        logger.debug("Window exhausted, refilling with [%d, %d)", self.window.start, self.window.end)

    async def _stream_window(self) -> AsyncIterator[BlockEvent | EndOfWindow | EndOfStream]:
        """Decoded messages of the current window up to and including its terminal message."""
        self.state = ReaderState.STREAMING
        self.windows_opened += 1
        async with aclosing(self.endpoint.open_stream(self._request())) as raw_stream:
            async for raw in raw_stream:
                msg = decode_message(raw)
                if isinstance(msg, NewBlock):
                    self.cursor = msg.cursor
                    yield BlockEvent(
                        height=msg.height,
                        payload=msg.payload,
                        cursor=msg.cursor,
                        module_name=self.module_name,
                    )
                else:
                    yield msg
                    return
        raise EndpointConnectionError(
            f"stream for window [{self.window.start}, {self.window.end}) ended without a terminal message"
        )

    async def events(self) -> AsyncIterator[BlockEvent | StreamClosed]:
        """Yield block events across windows, then one `StreamClosed`.

        A reader is single use: once iteration ends for any reason it is
        CLOSED and further iteration yields nothing.
        """
        if self.state is ReaderState.CLOSED:
            return
        try:
            while self.state is not ReaderState.CLOSED:
                end_of_window = False
                async with aclosing(self._stream_window()) as window_stream:
                    async for item in window_stream:
                        if isinstance(item, BlockEvent):
                            yield item
                        elif isinstance(item, EndOfWindow):
                            end_of_window = True
                        else:
                            self.state = ReaderState.CLOSED
                if end_of_window:
                    self._refill()
            logger.info(
                "Stream closed for module %s after %d windows (%d refills)",
                self.module_name,
                self.windows_opened,
                self.refills,
            )
            yield StreamClosed(windows=self.windows_opened, refills=self.refills)
        finally:
            self.state = ReaderState.CLOSED

    def __aiter__(self) -> AsyncIterator[BlockEvent | StreamClosed]:
        return self.events()
