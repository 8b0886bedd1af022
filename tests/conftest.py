import asyncio
import json
from pathlib import Path

import pytest

from sfind.core.models import StreamRequest
from sfind.storage.database import connect
from sfind.storage.migrations import run_migrations

MODULE = "block_to_block_output"


def block_output(height: int, n_tx: int = 1) -> bytes:
    """`block_to_block_output` payload with `n_tx` transactions of one event each."""
    txs = [
        {
            "version": height * 10 + i,
            "hash": f"0xAB{height:04x}{i:02x}",
            "type": "user_transaction",
            "timestamp": 1_665_000_000_000_000 + height,
            "success": True,
            "vm_status": "Executed successfully",
            "gas_used": 7,
            "epoch": 2,
            "events": [
                {
                    "account_address": "0x1",
                    "creation_number": 3,
                    "sequence_number": height,
                    "type": "0x1::coin::DepositEvent",
                    "data": {"amount": "100"},
                }
            ],
        }
        for i in range(n_tx)
    ]
    return json.dumps({"height": height, "transactions": txs}).encode()


def new_block(height: int, payload: bytes | None = None) -> dict:
    payload = block_output(height) if payload is None else payload
    return {"type": "new_block", "height": height, "payload": "0x" + payload.hex(), "cursor": f"c{height}"}


END_OF_WINDOW = {"type": "end_of_window"}
END_OF_STREAM = {"type": "end_of_stream"}


class ChainEndpoint:
    """In-memory provider serving heights [0, tip) window by window."""

    def __init__(self, tip: int, *, bad_payload_at: int | None = None) -> None:
        self.tip = tip
        self.bad_payload_at = bad_payload_at
        self.requests: list[dict] = []
        self.closed = False

    async def open_stream(self, request: StreamRequest):
        payload = request.to_payload()
        self.requests.append(payload)
        if "cursor" in payload:
            start = int(payload["cursor"][1:]) + 1
        else:
            start = payload["start_height"]
        end = payload["end_height"]
        for h in range(start, min(end, self.tip)):
            yield new_block(h, b"not json" if h == self.bad_payload_at else None)
        yield END_OF_STREAM if end >= self.tip else END_OF_WINDOW

    async def aclose(self) -> None:
        self.closed = True


class IdleEndpoint:
    """Serves a few blocks, calls `on_idle`, then idles until cancelled."""

    def __init__(self, heights: list[int], on_idle) -> None:
        self.heights = heights
        self.on_idle = on_idle
        self.closed = False

    async def open_stream(self, request: StreamRequest):
        for h in self.heights:
            yield new_block(h)
        self.on_idle()
        await asyncio.sleep(3600)
        yield END_OF_STREAM

    async def aclose(self) -> None:
        self.closed = True


class ScriptedEndpoint:
    """Provider replaying one scripted message list per stream request."""

    def __init__(self, *windows: list[dict]) -> None:
        self.windows = list(windows)
        self.requests: list[dict] = []

    async def open_stream(self, request: StreamRequest):
        self.requests.append(request.to_payload())
        for msg in self.windows.pop(0):
            yield msg

    async def aclose(self) -> None:
        pass


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"duckdb://{tmp_path / 'index.duckdb'}"


@pytest.fixture
def con(database_url: str):
    con = connect(database_url)
    run_migrations(con)
    yield con
    con.close()


@pytest.fixture
def package_file(tmp_path: Path) -> Path:
    package = {
        "version": 1,
        "network": "aptos",
        "modules": [
            {
                "name": "map_transactions",
                "kind": "map",
                "inputs": [{"source": "aptos.extractor.v1.Block"}],
                "output_type": "proto:aptos.Transactions",
            },
            {
                "name": MODULE,
                "kind": "map",
                "inputs": [{"module": "map_transactions"}],
                "output_type": "proto:aptos.BlockOutput",
            },
            {
                "name": "store_balances",
                "kind": "store",
                "inputs": [{"module": MODULE}],
            },
        ],
    }
    path = tmp_path / "aptos-indexer.json"
    path.write_text(json.dumps(package))
    return path
