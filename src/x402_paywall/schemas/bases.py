"""
Base Schema Models for the x402 Paywall Client

Defines the base model every wire-level schema inherits from. The x402 JSON
documents use camelCase keys while the Python attributes use snake_case; the
base model accepts both spellings on input and emits the aliases on output.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON serialization

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Provides a deterministic JSON representation (sorted keys, no extra
    whitespace) and alias-aware dict export so that models round-trip with
    the camelCase payloads exchanged with x402 resource servers.

    Example:
        class MyModel(CanonicalModel):
            pay_to: str = Field(..., alias="payTo")

        model = MyModel(pay_to="0xabc")
        model.to_dict()              # {"payTo": "0xabc"}
        model.to_canonical_json()    # '{"payTo":"0xabc"}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        Keys are sorted and separators carry no whitespace, so two equal
        models always serialize to the same string.

        Returns:
            str: Compact JSON with sorted keys, using field aliases.
        """
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to its wire dictionary representation.

        Returns:
            Dict[str, Any]: JSON-compatible dict keyed by field aliases.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
