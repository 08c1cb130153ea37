"""
Guest ledger record model.
"""

import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LocalTransaction(BaseModel):
    """A transaction kept in session storage, serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: Literal["income", "expense"] = "expense"
    amount: float = 0.0
    category: str = ""
    description: str = ""
    date: str
    tags: list[str] = Field(default_factory=list)
    notes: str = ""
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        """Non-numeric input becomes 0, negative input its magnitude."""
        try:
            amount = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(amount) or math.isinf(amount):
            return 0.0
        return abs(amount)

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
