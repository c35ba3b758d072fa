"""REST client for the append-only `payments` collection (PostgREST dialect)."""

import httpx
from pydantic import ValidationError

from payx.common.config import Settings
from payx.common.errors import DuplicatePaymentError, NotConfiguredError, UpstreamError
from payx.common.logging import logger
from payx.common.metrics import upstream_failures_total
from payx.services.ledger.models import PaymentRecord


class LedgerClient:
    """Insert and query payment rows. Exposes no update or delete."""

    dependency = "ledger"

    def __init__(self, settings: Settings, http: httpx.AsyncClient) -> None:
        self.settings = settings
        self.http = http

    @property
    def configured(self) -> bool:
        return self.settings.ledger_configured

    @property
    def collection_url(self) -> str:
        return f"{(self.settings.ledger_url or '').rstrip('/')}/rest/v1/{self.settings.ledger_table}"

    def _headers(self) -> dict[str, str]:
        if not self.configured:
            raise NotConfiguredError("Ledger store not configured")
        return {
            "apikey": self.settings.ledger_api_key or "",
            "Authorization": f"Bearer {self.settings.ledger_token}",
            "Content-Type": "application/json",
        }

    def _fail(self, message: str, status_code: int | None = None) -> UpstreamError:
        upstream_failures_total.labels(service=self.settings.service_name, dependency=self.dependency).inc()
        logger.error("ledger request failed status=%s error=%s", status_code, message)
        return UpstreamError(self.dependency, message, status_code)

    async def _rows(self, params: dict[str, str]) -> list:
        headers = self._headers()
        try:
            resp = await self.http.get(self.collection_url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise self._fail(f"ledger unreachable: {exc}") from exc
        if resp.status_code >= 400:
            raise self._fail(f"ledger query failed: {resp.status_code}", resp.status_code)
        try:
            rows = resp.json()
        except ValueError as exc:
            raise self._fail("ledger returned invalid JSON") from exc
        if not isinstance(rows, list):
            raise self._fail("ledger returned a non-list body")
        return rows

    def _records(self, rows: list) -> list[PaymentRecord]:
        """Validate rows; one malformed row is logged and left out."""

        records = []
        for row in rows:
            try:
                records.append(PaymentRecord.model_validate(row))
            except ValidationError as exc:
                logger.warning("skipping malformed ledger row error=%s", exc)
        return records

    async def _select(self, params: dict[str, str]) -> list[PaymentRecord]:
        return self._records(await self._rows(params))

    async def insert_payment(self, record: PaymentRecord) -> None:
        """Append one row; a uniqueness conflict raises DuplicatePaymentError."""

        headers = self._headers()
        headers["Prefer"] = "return=minimal"
        try:
            resp = await self.http.post(self.collection_url, json=record.to_row(), headers=headers)
        except httpx.HTTPError as exc:
            raise self._fail(f"ledger unreachable: {exc}") from exc
        if resp.status_code == 409:
            raise DuplicatePaymentError(self.dependency, "transaction hash already recorded", 409)
        if resp.status_code >= 400:
            raise self._fail(f"ledger insert failed: {resp.status_code}", resp.status_code)

    async def find_by_transaction_hash(self, transaction_hash: str) -> PaymentRecord | None:
        rows = await self._select({"transaction_hash": f"eq.{transaction_hash}", "limit": "1"})
        return rows[0] if rows else None

    async def list_by_wallet(self, wallet_address: str) -> list[PaymentRecord]:
        """All rows for a wallet, newest first. Matching ignores case."""

        return await self._select(
            {"wallet_address": f"ilike.{wallet_address}", "order": "created_at.desc"}
        )

    async def list_all(self, page_size: int = 1000) -> list[PaymentRecord]:
        """Every row in the collection, newest first, fetched page by page."""

        records: list[PaymentRecord] = []
        offset = 0
        while True:
            page = await self._rows(
                {"order": "created_at.desc", "limit": str(page_size), "offset": str(offset)}
            )
            records.extend(self._records(page))
            if len(page) < page_size:
                return records
            offset += page_size

    async def ping(self) -> None:
        """Raise unless the collection answers a one-row query."""

        await self._rows({"limit": "1"})
