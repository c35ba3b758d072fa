"""Token-transfer rows as returned by the `tokentx` indexing endpoint."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class TokenTransfer(BaseModel):
    """One ERC-20 transfer log entry. Numeric fields stay as provider strings."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    hash: str
    from_address: str = Field(default="", alias="from")
    to_address: str = Field(default="", alias="to")
    contract_address: str = Field(default="", alias="contractAddress")
    value: str = "0"
    time_stamp: str = Field(default="", alias="timeStamp")
    block_number: str = Field(default="", alias="blockNumber")
    log_index: str = Field(default="", alias="logIndex")

    @property
    def identity(self) -> tuple[str, str, str, str, str]:
        """Distinguishes transfers that share a transaction hash."""

        return (self.hash, self.log_index, self.from_address.lower(), self.to_address.lower(), self.value)

    @property
    def block(self) -> int | None:
        try:
            return int(self.block_number)
        except ValueError:
            return None

    @property
    def timestamp(self) -> datetime | None:
        try:
            return datetime.fromtimestamp(int(self.time_stamp), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
