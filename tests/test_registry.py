import pytest

from sfind.core.constants import BLOCK_OUTPUT_MODULE
from sfind.core.errors import ConfigurationError
from sfind.core.interfaces import IBlockProcessor
from sfind.processors.block_output import BlockOutputProcessor
from sfind.processors.registry import make_default_registry, make_registry
from sfind.streaming.wire import EndOfStream, EndOfWindow, NewBlock, decode_message


def test_make_default_registry() -> None:
    registry = make_default_registry()

    assert registry.module_names() == [BLOCK_OUTPUT_MODULE]
    processor = registry.get(BLOCK_OUTPUT_MODULE)
    assert isinstance(processor, BlockOutputProcessor)
    assert isinstance(processor, IBlockProcessor)
    assert registry.get(BLOCK_OUTPUT_MODULE) is processor


def test_unknown_module() -> None:
    with pytest.raises(ConfigurationError, match="map_pools"):
        make_default_registry().get("map_pools")


def test_duplicate_registration() -> None:
    with pytest.raises(ConfigurationError):
        make_registry([("m", BlockOutputProcessor), ("m", BlockOutputProcessor)])


def test_decode_message_variants() -> None:
    block = decode_message({"type": "new_block", "height": 3, "payload": "0x7b7d", "cursor": "c3"})

    assert isinstance(block, NewBlock)
    assert block.payload == b"{}"
    assert isinstance(decode_message({"type": "end_of_window"}), EndOfWindow)
    assert isinstance(decode_message({"type": "end_of_stream"}), EndOfStream)
