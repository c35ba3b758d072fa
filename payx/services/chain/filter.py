"""Selection of genuine incoming payments from a raw transfer list."""

from collections.abc import Iterable
from decimal import Decimal

from payx.common.addresses import same_address
from payx.common.pricing import to_token_units
from payx.services.chain.models import TokenTransfer


def is_incoming_payment(
    transfer: TokenTransfer,
    *,
    receiving_address: str,
    asset_address: str,
    min_amount: Decimal,
    decimals: int = 6,
) -> bool:
    """True for a transfer of the asset into the receiving address from someone else."""

    if not same_address(transfer.contract_address, asset_address):
        return False
    if not same_address(transfer.to_address, receiving_address):
        return False
    if same_address(transfer.from_address, receiving_address):
        return False
    amount = to_token_units(transfer.value, decimals)
    return amount is not None and amount >= min_amount


def filter_incoming_transfers(
    transfers: Iterable[TokenTransfer],
    *,
    receiving_address: str,
    asset_address: str,
    min_amount: Decimal = Decimal("0.01"),
    decimals: int = 6,
) -> list[TokenTransfer]:
    """Keep matching transfers, preserving input order."""

    return [
        t
        for t in transfers
        if is_incoming_payment(
            t,
            receiving_address=receiving_address,
            asset_address=asset_address,
            min_amount=min_amount,
            decimals=decimals,
        )
    ]
