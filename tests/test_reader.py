import pytest

from conftest import END_OF_STREAM, END_OF_WINDOW, MODULE, ChainEndpoint, ScriptedEndpoint, new_block
from sfind.core.errors import DecodeError, EndpointConnectionError
from sfind.core.models import BlockEvent, StreamClosed
from sfind.streaming.reader import ReaderState, WindowedStreamReader


def make_reader(endpoint, *, start_height: int = 0, window_size: int = 500, cursor: str | None = None):
    return WindowedStreamReader(
        endpoint,
        module_name=MODULE,
        modules=[{"name": MODULE}],
        start_height=start_height,
        window_size=window_size,
        cursor=cursor,
    )


async def collect(reader: WindowedStreamReader) -> list:
    return [item async for item in reader]


@pytest.mark.asyncio
async def test_refills_are_transparent() -> None:
    endpoint = ChainEndpoint(1200)
    reader = make_reader(endpoint)

    items = await collect(reader)

    blocks = [i for i in items if isinstance(i, BlockEvent)]
    assert [b.height for b in blocks] == list(range(1200))
    assert items[-1] == StreamClosed(windows=3, refills=2)
    assert reader.refills == 2
    assert reader.state is ReaderState.CLOSED
    assert [(r["start_height"], r["end_height"]) for r in endpoint.requests] == [(0, 500), (500, 1000), (1000, 1500)]


@pytest.mark.asyncio
async def test_end_of_window_never_terminates() -> None:
    endpoint = ScriptedEndpoint(
        [END_OF_WINDOW],
        [END_OF_WINDOW],
        [new_block(8), END_OF_STREAM],
    )
    reader = make_reader(endpoint, start_height=4, window_size=2)

    items = await collect(reader)

    assert [i.height for i in items if isinstance(i, BlockEvent)] == [8]
    assert isinstance(items[-1], StreamClosed)
    assert [r["start_height"] for r in endpoint.requests] == [4, 6, 8]


@pytest.mark.asyncio
async def test_stream_closed_is_emitted_once() -> None:
    reader = make_reader(ScriptedEndpoint([END_OF_STREAM]))

    assert await collect(reader) == [StreamClosed(windows=1, refills=0)]
    assert await collect(reader) == []


@pytest.mark.asyncio
async def test_height_mode_requests_carry_no_cursor() -> None:
    endpoint = ChainEndpoint(10)
    await collect(make_reader(endpoint, window_size=4))

    for req in endpoint.requests:
        assert "cursor" not in req
        assert req["output_module"] == MODULE


@pytest.mark.asyncio
async def test_cursor_mode_carries_latest_cursor() -> None:
    endpoint = ChainEndpoint(10)
    reader = make_reader(endpoint, start_height=3, window_size=4, cursor="c2")

    items = await collect(reader)

    assert [i.height for i in items if isinstance(i, BlockEvent)] == list(range(3, 10))
    assert all("start_height" not in r for r in endpoint.requests)
    assert [r["cursor"] for r in endpoint.requests] == ["c2", "c6"]
    assert reader.cursor == "c9"


@pytest.mark.asyncio
async def test_cursor_mode_without_cursor_falls_back_to_height() -> None:
    endpoint = ChainEndpoint(2)
    reader = make_reader(endpoint, start_height=1, cursor="c0")
    reader.cursor = None

    await collect(reader)

    assert endpoint.requests[0]["start_height"] == 1
    assert "cursor" not in endpoint.requests[0]


@pytest.mark.asyncio
async def test_window_without_terminal_message_is_a_dropped_connection() -> None:
    reader = make_reader(ScriptedEndpoint([new_block(0), new_block(1)]))
    received = []

    with pytest.raises(EndpointConnectionError):
        async for item in reader:
            received.append(item.height)

    assert received == [0, 1]


@pytest.mark.asyncio
async def test_reader_is_closed_after_an_error() -> None:
    endpoint = ScriptedEndpoint([new_block(0)], [new_block(1), END_OF_STREAM])
    reader = make_reader(endpoint)

    with pytest.raises(EndpointConnectionError):
        await collect(reader)

    assert reader.state is ReaderState.CLOSED
    assert await collect(reader) == []
    assert len(endpoint.requests) == 1


@pytest.mark.asyncio
async def test_malformed_message_is_a_decode_error() -> None:
    bad = {"type": "new_block", "height": 0, "payload": "not-hex", "cursor": "c0"}
    reader = make_reader(ScriptedEndpoint([bad, END_OF_STREAM]))

    with pytest.raises(DecodeError):
        await collect(reader)


@pytest.mark.asyncio
async def test_unknown_message_type_is_a_decode_error() -> None:
    reader = make_reader(ScriptedEndpoint([{"type": "progress"}, END_OF_STREAM]))

    with pytest.raises(DecodeError):
        await collect(reader)
