"""
Base Schema Models

Shared Pydantic building blocks for the relay wire format:

    - CanonicalModel: camelCase-aliased base model with JSON-safe dumps
    - Address / TxHash / Bytes32Hex / UintString: constrained string types
    - TokenUnits: integer that serializes to a decimal string in JSON mode,
      so uint256 values never lose precision in JavaScript clients
"""

import re
from typing import Annotated, Any, Dict

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
TX_HASH_PATTERN = r"^0x[a-fA-F0-9]{64}$"
BYTES32_PATTERN = TX_HASH_PATTERN
HEX_PATTERN = r"^0x[a-fA-F0-9]+$"
UINT_PATTERN = r"^[0-9]+$"

_ADDRESS_RE = re.compile(ADDRESS_PATTERN)
_TX_HASH_RE = re.compile(TX_HASH_PATTERN)

Address = Annotated[str, Field(pattern=ADDRESS_PATTERN)]
TxHash = Annotated[str, Field(pattern=TX_HASH_PATTERN)]
Bytes32Hex = Annotated[str, Field(pattern=BYTES32_PATTERN)]
HexString = Annotated[str, Field(pattern=HEX_PATTERN)]
UintString = Annotated[str, Field(pattern=UINT_PATTERN)]

TokenUnits = Annotated[int, PlainSerializer(lambda v: str(v), return_type=str, when_used="json")]


def is_address(value: Any) -> bool:
    """Strict ``0x`` + 40 hex characters check."""
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def is_tx_hash(value: Any) -> bool:
    """Strict ``0x`` + 64 hex characters check."""
    return isinstance(value, str) and bool(_TX_HASH_RE.match(value))


class CanonicalModel(BaseModel):
    """
    Base model for every wire schema.

    Python attributes are snake_case; JSON keys are camelCase aliases. Both
    forms are accepted on input.

    Example:
        class MyModel(CanonicalModel):
            token_address: str

        MyModel.model_validate({"tokenAddress": "0x..."})
        MyModel(token_address="0x...").to_json_dict()  # {"tokenAddress": "0x..."}
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    def to_json_dict(self, **kwargs: Any) -> Dict[str, Any]:
        """Dump with camelCase keys and JSON-safe values."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)
