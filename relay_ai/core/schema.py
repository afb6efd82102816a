"""Pydantic base schema utilities shared across relay-ai models.

Provides a common ``BaseSchema`` that enforces aliasing and extra-field policy
for the message model and the protocol envelopes.
"""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


def _to_camel(s: str) -> str:
    """Convert snake_case to camelCase for JSON aliasing."""
    parts = s.split("_")
    return parts[0] + "".join(p.capitalize() or "_" for p in parts[1:])


class BaseSchema(BaseModel):
    """Shared base for all wire-facing Pydantic models.

    - Sets strict handling for extra fields
    - Enables populate_by_name for using either snake_case or camelCase
    - Uses a snake->camel alias generator for JSON interop
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        alias_generator=_to_camel,  # snake_case -> camelCase aliases
    )

    def to_wire(self) -> Dict[str, Any]:
        """Dump the model as a camelCase JSON-compatible dict, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
