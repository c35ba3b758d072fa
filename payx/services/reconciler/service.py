"""Chain-to-ledger reconciliation of incoming USDC payments.

Transfers seen by the indexing API are filtered down to genuine payments to
the monitored address, checked against the ledger by transaction hash, and
appended when new. Work is per-record best effort: one failed row never aborts
the batch, and rows already inserted stay inserted.
"""

import asyncio
from time import perf_counter

from pydantic import BaseModel

from payx.common.config import Settings
from payx.common.errors import DuplicatePaymentError, NotConfiguredError, UpstreamError
from payx.common.logging import logger, transaction_hash_ctx
from payx.common.metrics import payments_recorded_total, reconcile_transactions_total, sync_duration_seconds
from payx.common.pricing import reward_for, to_token_units
from payx.services.chain.explorer import TransactionLogClient
from payx.services.chain.filter import filter_incoming_transfers
from payx.services.chain.models import TokenTransfer
from payx.services.ledger.client import LedgerClient
from payx.services.ledger.models import PaymentRecord


class ReconcileOutcome(BaseModel):
    """What happened to one candidate transfer."""

    hash: str
    wallet_address: str
    amount_usdc: float
    amount_payx: float
    status: str


class ReconcileResult(BaseModel):
    inserted: int = 0
    skipped: list[str] = []
    failed: list[str] = []
    outcomes: list[ReconcileOutcome] = []


def payment_from_transfer(transfer: TokenTransfer, decimals: int = 6) -> PaymentRecord:
    """Build the ledger row for a confirmed transfer, deriving the PAYX reward."""

    amount_usdc = to_token_units(transfer.value, decimals)
    if amount_usdc is None:
        raise ValueError(f"non-numeric transfer value: {transfer.value!r}")
    record = PaymentRecord(
        wallet_address=transfer.from_address.lower(),
        amount_usdc=amount_usdc,
        amount_payx=reward_for(amount_usdc),
        transaction_hash=transfer.hash,
        block_number=transfer.block,
    )
    if transfer.timestamp is not None:
        record.created_at = transfer.timestamp
    return record


class PaymentReconciler:
    """Appends transfers missing from the ledger, skipping known hashes."""

    def __init__(self, ledger: LedgerClient, service_name: str = "payx-api", decimals: int = 6) -> None:
        self.ledger = ledger
        self.service_name = service_name
        self.decimals = decimals

    def _count(self, outcome: str) -> None:
        reconcile_transactions_total.labels(service=self.service_name, outcome=outcome).inc()

    async def _already_recorded(self, transaction_hash: str) -> bool:
        try:
            return await self.ledger.find_by_transaction_hash(transaction_hash) is not None
        except UpstreamError as exc:
            # Unknown: a possible duplicate is preferred to a lost payment.
            logger.warning("existence check failed, inserting anyway hash=%s error=%s", transaction_hash, exc)
            return False

    async def reconcile(self, transfers: list[TokenTransfer]) -> ReconcileResult:
        """Process candidates sequentially in input order.

        Raises NotConfiguredError before touching anything when the ledger is
        not configured.
        """

        if not self.ledger.configured:
            raise NotConfiguredError("Ledger store not configured")

        result = ReconcileResult()
        for transfer in transfers:
            transaction_hash_ctx.set(transfer.hash)
            try:
                record = payment_from_transfer(transfer, self.decimals)
            except ValueError as exc:
                logger.warning("skipping transfer hash=%s error=%s", transfer.hash, exc)
                result.failed.append(transfer.hash)
                self._count("invalid")
                continue

            outcome = ReconcileOutcome(
                hash=transfer.hash,
                wallet_address=record.wallet_address,
                amount_usdc=float(record.amount_usdc),
                amount_payx=float(record.amount_payx),
                status="inserted",
            )
            if await self._already_recorded(transfer.hash):
                outcome.status = "skipped"
                result.skipped.append(transfer.hash)
                self._count("skipped")
                result.outcomes.append(outcome)
                continue

            try:
                await self.ledger.insert_payment(record)
            except DuplicatePaymentError:
                logger.info("ledger reports hash already recorded hash=%s", transfer.hash)
                outcome.status = "skipped"
                result.skipped.append(transfer.hash)
                self._count("skipped")
            except UpstreamError as exc:
                logger.error("insert failed hash=%s error=%s", transfer.hash, exc)
                outcome.status = "failed"
                result.failed.append(transfer.hash)
                self._count("failed")
            else:
                logger.info(
                    "payment reconciled hash=%s wallet=%s amount_usdc=%s",
                    transfer.hash,
                    record.wallet_address,
                    record.amount_usdc,
                )
                result.inserted += 1
                self._count("inserted")
                payments_recorded_total.labels(service=self.service_name, source="chain").inc()
            result.outcomes.append(outcome)
        transaction_hash_ctx.set("")
        return result


class BlockchainSyncService:
    """Fetch transfer history for the monitored address and reconcile it."""

    def __init__(
        self,
        settings: Settings,
        explorer: TransactionLogClient,
        reconciler: PaymentReconciler,
    ) -> None:
        self.settings = settings
        self.explorer = explorer
        self.reconciler = reconciler
        # Single writer per monitored address within this process.
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, address: str) -> asyncio.Lock:
        key = address.lower()
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def select_payments(self, transfers: list[TokenTransfer]) -> list[TokenTransfer]:
        return filter_incoming_transfers(
            transfers,
            receiving_address=self.settings.pay_to_address or "",
            asset_address=self.settings.usdc_contract_address,
            min_amount=self.settings.min_payment_usdc,
            decimals=self.settings.usdc_decimals,
        )

    async def sync(self, historical: bool = False) -> dict:
        """Run one sync pass and return the route-layer result payload.

        Never raises for configuration or upstream failures; those come back
        as `{success: False, error: ...}`.
        """

        address = self.settings.pay_to_address
        if not address:
            return {"success": False, "error": "Receiving address not configured"}
        if not self.reconciler.ledger.configured:
            return {"success": False, "error": "Ledger store not configured"}

        mode = "historical" if historical else "recent"
        start = perf_counter()
        try:
            async with self._lock_for(address):
                try:
                    if historical:
                        transfers = await self.explorer.fetch_all(address, self.settings.historical_page_size)
                    else:
                        transfers = await self.explorer.fetch_recent(address, self.settings.sync_recent_limit)
                except (NotConfiguredError, UpstreamError) as exc:
                    return {"success": False, "error": str(exc)}

                candidates = self.select_payments(transfers)
                logger.info(
                    "sync fetched mode=%s transfers=%s incoming=%s",
                    mode,
                    len(transfers),
                    len(candidates),
                )
                try:
                    result = await self.reconciler.reconcile(candidates)
                except NotConfiguredError as exc:
                    return {"success": False, "error": str(exc)}
        finally:
            sync_duration_seconds.labels(service=self.settings.service_name, mode=mode).observe(
                max(0.0, perf_counter() - start)
            )
        return {
            "success": True,
            "synced": result.inserted,
            "skipped": len(result.skipped),
            "failed": len(result.failed),
            "totalFound": len(candidates),
            "transactions": [o.model_dump() for o in result.outcomes],
        }
