import json

import pytest

from conftest import block_output
from sfind.core.errors import DecodeError, ProcessingError
from sfind.processors.block_output import BlockOutputProcessor, encode_event_data, normalize_hex
from sfind.storage.queries import fetch_blocks, fetch_table_counts


@pytest.fixture
def processor() -> BlockOutputProcessor:
    return BlockOutputProcessor()


def test_decode_flattens_block(processor: BlockOutputProcessor) -> None:
    records = processor.decode(block_output(7, n_tx=2), 7)

    assert records.height == 7
    assert records.blocks["first_version"] == [70]
    assert records.blocks["last_version"] == [71]
    assert records.transactions["version"] == [70, 71]
    assert records.transactions["hash"] == ["0xab000700", "0xab000701"]
    assert records.events["event_index"] == [0, 0]
    assert records.events["data"] == ['{"amount":"100"}', '{"amount":"100"}']
    assert records.row_count() == 5


def test_decode_empty_block(processor: BlockOutputProcessor) -> None:
    records = processor.decode(json.dumps({"height": 3}).encode(), 3)

    assert records.blocks["transaction_count"] == [0]
    assert records.blocks["first_version"] == [None]
    assert records.row_count() == 1


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b"{}",
        json.dumps({"height": 1, "transactions": [{"version": 1}]}).encode(),
        json.dumps({"height": -1}).encode(),
    ],
)
def test_malformed_payload(processor: BlockOutputProcessor, payload: bytes) -> None:
    with pytest.raises(DecodeError):
        processor.decode(payload, 1)


def test_payload_height_must_match_delivery(processor: BlockOutputProcessor) -> None:
    with pytest.raises(ProcessingError, match="delivered as block 9"):
        processor.decode(block_output(8), 9)


def test_repeated_transaction_version(processor: BlockOutputProcessor) -> None:
    doc = json.loads(block_output(2, n_tx=1))
    doc["transactions"].append(dict(doc["transactions"][0]))

    with pytest.raises(DecodeError, match="repeats"):
        processor.decode(json.dumps(doc).encode(), 2)


def test_write_is_idempotent(processor: BlockOutputProcessor, con) -> None:
    records = processor.decode(block_output(4, n_tx=3), 4)

    assert processor.write(records, con) == 7
    processor.write(records, con)

    assert fetch_table_counts(con) == {"blocks": 1, "transactions": 3, "events": 3}
    blocks = fetch_blocks(con, 0, 10)
    assert blocks["height"].tolist() == [4]
    assert blocks["transaction_count"].tolist() == [3]


def test_normalize_hex() -> None:
    assert normalize_hex(" ABCD ") == "0xabcd"
    assert normalize_hex("0xAbCd") == "0xabcd"


def test_encode_event_data() -> None:
    assert encode_event_data("raw") == "raw"
    assert encode_event_data({"b": 1, "a": [2]}) == '{"a":[2],"b":1}'
    assert encode_event_data(None) == "null"
