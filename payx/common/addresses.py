"""Wallet address validation and normalization applied at every ingress."""

import re

# Alphanumerics only, so an address can never carry PostgREST filter syntax.
WALLET_PATTERN = re.compile(r"^0x[0-9a-zA-Z]{1,64}$")


def normalize_address(address: str) -> str:
    """Validate a wallet address and return its lowercase form.

    Raises ValueError for anything that is not `0x` followed by alphanumerics.
    """

    candidate = (address or "").strip()
    if not WALLET_PATTERN.match(candidate):
        raise ValueError(f"invalid wallet address: {address!r}")
    return candidate.lower()


def same_address(left: str | None, right: str | None) -> bool:
    if not left or not right:
        return False
    return left.strip().lower() == right.strip().lower()
