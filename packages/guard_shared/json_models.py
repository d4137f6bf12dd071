"""Base model for documents persisted as camelCase JSON on the durable store."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PersistedModel(BaseModel):
    """Frozen model whose JSON form uses camelCase keys.

    Unknown keys are ignored on load so documents written by newer or older
    releases still parse.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> dict[str, Any]:
        """Return the camelCase JSON mapping, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
