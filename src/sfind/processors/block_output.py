"""Processor for the `block_to_block_output` module.

The module emits one `BlockOutput` document per block (UTF-8 JSON):

    {"height": 12,
     "transactions": [
        {"version": 3401, "hash": "0x..", "type": "user_transaction",
         "timestamp": 1665000000000000, "success": true, "vm_status": "Executed successfully",
         "gas_used": 12, "epoch": 2,
         "events": [{"account_address": "0x1", "creation_number": 3, "sequence_number": 7,
                     "type": "0x1::coin::DepositEvent", "data": {"amount": "100"}}]}]}

It is mapped onto three relational tables:
- `blocks`: one row per block height
- `transactions`: one row per transaction version
- `events`: one row per (transaction_version, event_index)

All writes are `INSERT OR REPLACE` on primary keys, so replaying a block
leaves the store exactly as a single write would.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import duckdb
import pyarrow as pa
from eth_utils import add_0x_prefix
from pydantic import BaseModel, Field, ValidationError

from sfind.core.constants import BLOCK_OUTPUT_MODULE
from sfind.core.errors import DecodeError, ProcessingError
from sfind.storage import sql_queries

logger = logging.getLogger(__name__)


# === Payload models ===


class EventOutput(BaseModel):
    account_address: str
    creation_number: int = Field(ge=0)
    sequence_number: int = Field(ge=0)
    type: str
    data: Any = None


class TransactionOutput(BaseModel):
    version: int = Field(ge=0)
    hash: str
    type: str
    timestamp: int = Field(ge=0)
    success: bool
    vm_status: str = ""
    gas_used: int = Field(default=0, ge=0)
    epoch: int = Field(default=0, ge=0)
    events: Sequence[EventOutput] = ()


class BlockOutput(BaseModel):
    height: int = Field(ge=0)
    transactions: Sequence[TransactionOutput] = ()


# === Arrow schemas ===

BLOCKS_SCHEMA = pa.schema(
    [
        ("height", pa.int64()),
        ("first_version", pa.int64()),
        ("last_version", pa.int64()),
        ("transaction_count", pa.int32()),
        ("block_timestamp", pa.int64()),
    ]
)

TRANSACTIONS_SCHEMA = pa.schema(
    [
        ("version", pa.int64()),
        ("block_height", pa.int64()),
        ("hash", pa.string()),
        ("tx_type", pa.string()),
        ("tx_timestamp", pa.int64()),
        ("success", pa.bool_()),
        ("vm_status", pa.string()),
        ("gas_used", pa.int64()),
        ("epoch", pa.int64()),
        ("event_count", pa.int32()),
    ]
)

EVENTS_SCHEMA = pa.schema(
    [
        ("transaction_version", pa.int64()),
        ("event_index", pa.int32()),
        ("block_height", pa.int64()),
        ("account_address", pa.string()),
        ("creation_number", pa.int64()),
        ("sequence_number", pa.int64()),
        ("event_type", pa.string()),
        ("data", pa.string()),
    ]
)


def normalize_hex(value: str) -> str:
    """Lowercase 0x-prefixed form of an address or hash."""
    return add_0x_prefix(value.strip().lower())


def encode_event_data(data: Any) -> str:
    if isinstance(data, str):
        return data
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


# === Records ===


@dataclass(slots=True)
class BlockOutputRecords:
    """Rows produced from one block, column-oriented."""

    height: int
    blocks: dict[str, list] = field(default_factory=dict)
    transactions: dict[str, list] = field(default_factory=lambda: {n: [] for n in TRANSACTIONS_SCHEMA.names})
    events: dict[str, list] = field(default_factory=lambda: {n: [] for n in EVENTS_SCHEMA.names})

    def row_count(self) -> int:
        return 1 + len(self.transactions["version"]) + len(self.events["transaction_version"])

    def to_arrow_tables(self) -> dict[str, pa.Table]:
        return {
            "incoming_blocks": pa.Table.from_pydict(self.blocks, schema=BLOCKS_SCHEMA),
            "incoming_transactions": pa.Table.from_pydict(self.transactions, schema=TRANSACTIONS_SCHEMA),
            "incoming_events": pa.Table.from_pydict(self.events, schema=EVENTS_SCHEMA),
        }


def records_from_output(output: BlockOutput) -> BlockOutputRecords:
    """Flatten a decoded block into table rows."""
    recs = BlockOutputRecords(height=output.height)
    versions = [tx.version for tx in output.transactions]
    if len(set(versions)) != len(versions):
        raise DecodeError(f"block {output.height} repeats a transaction version")

    recs.blocks = {
        "height": [output.height],
        "first_version": [min(versions) if versions else None],
        "last_version": [max(versions) if versions else None],
        "transaction_count": [len(versions)],
        "block_timestamp": [max((tx.timestamp for tx in output.transactions), default=None)],
    }

    txs, evs = recs.transactions, recs.events
    for tx in output.transactions:
        txs["version"].append(tx.version)
        txs["block_height"].append(output.height)
        txs["hash"].append(normalize_hex(tx.hash))
        txs["tx_type"].append(tx.type)
        txs["tx_timestamp"].append(tx.timestamp)
        txs["success"].append(tx.success)
        txs["vm_status"].append(tx.vm_status)
        txs["gas_used"].append(tx.gas_used)
        txs["epoch"].append(tx.epoch)
        txs["event_count"].append(len(tx.events))
        for idx, ev in enumerate(tx.events):
            evs["transaction_version"].append(tx.version)
            evs["event_index"].append(idx)
            evs["block_height"].append(output.height)
            evs["account_address"].append(normalize_hex(ev.account_address))
            evs["creation_number"].append(ev.creation_number)
            evs["sequence_number"].append(ev.sequence_number)
            evs["event_type"].append(ev.type)
            evs["data"].append(encode_event_data(ev.data))
    return recs


# === Processor ===


class BlockOutputProcessor:
    """Maps `block_to_block_output` module output to relational rows."""

    module_name = BLOCK_OUTPUT_MODULE

    _UPSERTS = (
        ("incoming_blocks", sql_queries.UPSERT_BLOCKS),
        ("incoming_transactions", sql_queries.UPSERT_TRANSACTIONS),
        ("incoming_events", sql_queries.UPSERT_EVENTS),
    )

    def decode(self, payload: bytes, height: int) -> BlockOutputRecords:
        try:
            output = BlockOutput.model_validate_json(payload)
        except ValidationError as exc:
            raise DecodeError(f"malformed block output payload at block {height}: {exc.error_count()} error(s)") from exc
        if output.height != height:
            raise ProcessingError(f"payload reports block {output.height} but was delivered as block {height}")
        return records_from_output(output)

    def write(self, records: BlockOutputRecords, connection: duckdb.DuckDBPyConnection) -> int:
        tables = records.to_arrow_tables()
        for view_name, stmt in self._UPSERTS:
            connection.register(view_name, tables[view_name])
            try:
                connection.execute(stmt)
            finally:
                connection.unregister(view_name)
        rows = records.row_count()
        logger.debug("Wrote %d rows for block %d", rows, records.height)
        return rows
