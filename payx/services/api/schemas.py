"""Request bodies accepted by the public API."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ManualPaymentRequest(BaseModel):
    """Payload for `POST /add-manual-payment`; PAYX is derived when omitted."""

    walletAddress: str = Field(min_length=3)
    amountUsdc: Decimal = Field(ge=0)
    amountPayx: Decimal | None = Field(default=None, ge=0)
    transactionHash: str | None = None
    blockNumber: int | None = Field(default=None, ge=0)
    createdAt: datetime | None = None


class PaymentConfirmation(BaseModel):
    """Client-side notice that a paywall purchase completed."""

    wallet: str | None = None
    paymentUrl: str = ""
    paymentType: str | None = None
    status: str | None = None


class WalletTracking(BaseModel):
    wallet: str
    paymentUrl: str | None = None
    paymentType: str | None = None
