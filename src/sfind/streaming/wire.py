"""Stream message decoding.

Raw provider messages are JSON objects discriminated by `type`:
- `new_block`: {"type": "new_block", "height": int, "payload": "0x..", "cursor": str}
- `end_of_window`: the requested range is exhausted
- `end_of_stream`: the provider has nothing more to serve
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from eth_utils import decode_hex, is_hex
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from sfind.core.errors import DecodeError


class NewBlock(BaseModel):
    type: Literal["new_block"]
    height: int = Field(ge=0)
    payload: bytes
    cursor: str

    @field_validator("payload", mode="before")
    @classmethod
    def _decode_payload(cls, v: Any) -> bytes:
        if isinstance(v, bytes):
            return v
        if not isinstance(v, str) or not is_hex(v):
            raise ValueError("payload must be a 0x-prefixed hex string")
        return decode_hex(v)


class EndOfWindow(BaseModel):
    type: Literal["end_of_window"]


class EndOfStream(BaseModel):
    type: Literal["end_of_stream"]


StreamMessage = Annotated[NewBlock | EndOfWindow | EndOfStream, Field(discriminator="type")]

_ADAPTER: TypeAdapter[NewBlock | EndOfWindow | EndOfStream] = TypeAdapter(StreamMessage)


def decode_message(raw: dict[str, Any]) -> NewBlock | EndOfWindow | EndOfStream:
    """Validate one raw message into its typed variant."""
    try:
        return _ADAPTER.validate_python(raw)
    except ValidationError as exc:
        raise DecodeError(f"malformed stream message: {exc.errors()[0].get('msg')} in {str(raw)[:120]}") from exc
