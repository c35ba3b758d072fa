"""Direct ledger writes: optimistic tier payments and manual entries."""

from datetime import datetime
from decimal import Decimal

from payx.common.errors import DuplicatePaymentError, NotConfiguredError, UpstreamError
from payx.common.logging import logger, wallet_address_ctx
from payx.common.metrics import payment_record_failures_total, payments_recorded_total
from payx.common.pricing import Tier, reward_for
from payx.services.ledger.client import LedgerClient
from payx.services.ledger.models import PaymentRecord


class PaymentRecorder:
    """Appends payment rows that do not come from chain reconciliation."""

    def __init__(self, ledger: LedgerClient, service_name: str = "payx-api") -> None:
        self.ledger = ledger
        self.service_name = service_name

    async def _append(self, record: PaymentRecord, source: str) -> None:
        try:
            await self.ledger.insert_payment(record)
        except (NotConfiguredError, UpstreamError):
            payment_record_failures_total.labels(service=self.service_name, source=source).inc()
            raise
        payments_recorded_total.labels(service=self.service_name, source=source).inc()
        logger.info(
            "payment recorded source=%s wallet=%s amount_usdc=%s amount_payx=%s",
            source,
            record.wallet_address,
            record.amount_usdc,
            record.amount_payx,
        )

    async def record_tier_payment(self, wallet_address: str, tier: Tier, source: str = "paywall") -> bool:
        """Record a tier purchase without waiting for on-chain confirmation.

        Best effort: returns False instead of raising when the ledger is
        missing or refuses the row, since the caller has already paid.
        """

        wallet_address_ctx.set(wallet_address)
        record = PaymentRecord(
            wallet_address=wallet_address,
            amount_usdc=tier.amount_usdc,
            amount_payx=tier.amount_payx,
        )
        try:
            await self._append(record, source)
        except NotConfiguredError:
            logger.info("ledger not configured, skipping tracking tier=%s", tier.name)
            return False
        except UpstreamError as exc:
            logger.error("payment tracking failed tier=%s error=%s", tier.name, exc)
            return False
        return True

    async def record_manual_payment(
        self,
        wallet_address: str,
        amount_usdc: Decimal,
        amount_payx: Decimal | None = None,
        transaction_hash: str | None = None,
        block_number: int | None = None,
        created_at: datetime | None = None,
    ) -> PaymentRecord:
        """Insert a caller-supplied row. Raises on ledger errors.

        A transaction hash already in the ledger raises `DuplicatePaymentError`
        so a manual entry cannot double-credit a reconciled transfer.
        """

        wallet_address_ctx.set(wallet_address)
        if transaction_hash and await self.ledger.find_by_transaction_hash(transaction_hash) is not None:
            logger.warning("manual payment rejected, hash already recorded transaction_hash=%s", transaction_hash)
            raise DuplicatePaymentError("ledger", "transaction hash already recorded", 409)
        record = PaymentRecord(
            wallet_address=wallet_address,
            amount_usdc=amount_usdc,
            amount_payx=reward_for(amount_usdc) if amount_payx is None else amount_payx,
            transaction_hash=transaction_hash,
            block_number=block_number,
        )
        if created_at is not None:
            record.created_at = created_at
        await self._append(record, "manual")
        return record
