"""Payment ledger record shape shared by writers and readers."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class PaymentRecord(BaseModel):
    """One inbound payment as stored in the `payments` collection.

    Rows read back from the store may carry extra columns (`id`, audit
    fields); they are kept so callers see the row as stored.
    """

    model_config = ConfigDict(extra="allow")

    wallet_address: str
    amount_usdc: Decimal
    amount_payx: Decimal
    transaction_hash: str | None = None
    block_number: int | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("amount_usdc", "amount_payx")
    def _as_number(self, value: Decimal) -> float:
        return float(value)

    def to_row(self) -> dict[str, Any]:
        """JSON body for an insert; optional columns are left to the store."""

        return self.model_dump(mode="json", exclude_none=True)

    def sort_key(self) -> datetime:
        if self.created_at.tzinfo is None:
            return self.created_at.replace(tzinfo=timezone.utc)
        return self.created_at
