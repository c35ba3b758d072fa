"""Per-wallet balance and all-wallet dashboard built from ledger rows."""

from decimal import Decimal

from payx.common.errors import NotConfiguredError, UpstreamError
from payx.common.logging import logger
from payx.services.ledger.client import LedgerClient
from payx.services.ledger.models import PaymentRecord


def summarize(payments: list[PaymentRecord]) -> dict:
    """Reduce rows (any order) to totals plus the rows newest first."""

    ordered = sorted(payments, key=PaymentRecord.sort_key, reverse=True)
    total_usdc = sum((p.amount_usdc for p in ordered), Decimal(0))
    total_payx = sum((p.amount_payx for p in ordered), Decimal(0))
    rows = [p.model_dump(mode="json") for p in ordered]
    return {
        "totalPayx": float(total_payx),
        "totalUsdc": float(total_usdc),
        "paymentCount": len(rows),
        "payments": rows,
        "lastPayment": rows[0] if rows else None,
    }


class BalanceAggregator:
    """Read side of the ledger. Returns failure payloads instead of raising."""

    def __init__(self, ledger: LedgerClient, page_size: int = 1000) -> None:
        self.ledger = ledger
        self.page_size = page_size

    async def get_balance(self, wallet_address: str) -> dict:
        try:
            payments = await self.ledger.list_by_wallet(wallet_address)
        except NotConfiguredError as exc:
            return {"success": False, "error": str(exc)}
        except UpstreamError as exc:
            logger.error("balance fetch error wallet=%s error=%s", wallet_address, exc)
            return {"success": False, "error": "Failed to fetch balance"}
        return {"success": True, "walletAddress": wallet_address, **summarize(payments)}

    async def dashboard(self) -> dict:
        """Every payment grouped by (case-insensitive) wallet, largest holders first."""

        try:
            payments = await self.ledger.list_all(self.page_size)
        except NotConfiguredError as exc:
            return {"success": False, "error": str(exc)}
        except UpstreamError as exc:
            logger.error("dashboard fetch error=%s", exc)
            return {"success": False, "error": "Failed to fetch payments"}

        grouped: dict[str, list[PaymentRecord]] = {}
        for payment in payments:
            grouped.setdefault(payment.wallet_address.lower(), []).append(payment)

        wallets = [{"walletAddress": wallet, **summarize(rows)} for wallet, rows in grouped.items()]
        wallets.sort(key=lambda w: (-w["totalPayx"], w["walletAddress"]))
        return {
            "success": True,
            "totalWallets": len(wallets),
            "totalPayments": len(payments),
            "totalUsdc": float(sum((p.amount_usdc for p in payments), Decimal(0))),
            "totalPayx": float(sum((p.amount_payx for p in payments), Decimal(0))),
            "wallets": wallets,
        }
