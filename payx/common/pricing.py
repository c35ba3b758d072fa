"""Reward rate and the fixed price tiers sold behind the paywall."""

from decimal import Decimal, InvalidOperation
from typing import NamedTuple

# PAYX tokens credited per 1 USDC paid.
REWARD_RATE = Decimal(20000)


class Tier(NamedTuple):
    name: str
    amount_usdc: Decimal
    amount_payx: Decimal
    description: str

    @property
    def path(self) -> str:
        return f"/payment/{self.name}"

    @property
    def price_label(self) -> str:
        return f"{self.amount_usdc.normalize():f} USDC"

    @property
    def reward_label(self) -> str:
        return f"{int(self.amount_payx):,} PAYX"


TIERS: dict[str, Tier] = {
    tier.name: tier
    for tier in [
        Tier("test", Decimal("0.01"), Decimal(50), "TEST: Pay 0.01 USDC, get 50 PAYX tokens."),
        Tier("5usdc", Decimal(5), Decimal(100_000), "Pay 5 USDC, get 100,000 PAYX tokens."),
        Tier("10usdc", Decimal(10), Decimal(200_000), "Pay 10 USDC, get 200,000 PAYX tokens."),
        Tier("100usdc", Decimal(100), Decimal(2_000_000), "Pay 100 USDC, get 2,000,000 PAYX tokens."),
    ]
}


def reward_for(amount_usdc: Decimal) -> Decimal:
    """Derive the PAYX reward for a USDC amount at the fixed rate."""

    return amount_usdc * REWARD_RATE


def to_token_units(raw_value: str | int, decimals: int) -> Decimal | None:
    """Convert a smallest-unit integer string to a token amount.

    Returns None for values that are not finite numbers.
    """

    try:
        value = Decimal(str(raw_value).strip())
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value.scaleb(-decimals)


def tier_for_url(url: str) -> Tier | None:
    """Find the tier whose payment path appears in `url`."""

    # Longest path first so "/payment/100usdc" is not taken for "/payment/10usdc".
    for tier in sorted(TIERS.values(), key=lambda t: len(t.path), reverse=True):
        if tier.path in url:
            return tier
    return None
