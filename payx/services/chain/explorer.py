"""Client for the Etherscan-compatible token-transfer log (`module=account&action=tokentx`)."""

import httpx
from pydantic import ValidationError

from payx.common.config import Settings
from payx.common.errors import NotConfiguredError, UpstreamError
from payx.common.logging import logger
from payx.common.metrics import upstream_failures_total
from payx.services.chain.models import TokenTransfer

# Provider answers status "0" with this message for an address with no history.
EMPTY_RESULT_MESSAGE = "No transactions found"


class TransactionLogClient:
    """Read-only access to transfer history of one address, newest first."""

    dependency = "explorer"

    def __init__(self, settings: Settings, http: httpx.AsyncClient) -> None:
        self.settings = settings
        self.http = http

    def _fail(self, message: str, status_code: int | None = None) -> UpstreamError:
        upstream_failures_total.labels(service=self.settings.service_name, dependency=self.dependency).inc()
        logger.error("explorer request failed status=%s error=%s", status_code, message)
        return UpstreamError(self.dependency, message, status_code)

    async def fetch_page(
        self,
        address: str,
        page: int | None = None,
        offset: int | None = None,
        end_block: int | None = None,
    ) -> list[TokenTransfer]:
        """Fetch one page of transfers at or below `end_block`, newest first."""

        if not self.settings.explorer_api_key:
            raise NotConfiguredError("Explorer API key not configured")
        params: dict[str, str | int] = {
            "module": "account",
            "action": "tokentx",
            "address": address,
            "startblock": 0,
            "endblock": 99999999 if end_block is None else end_block,
            "sort": "desc",
            "chainid": self.settings.chain_id,
            "apikey": self.settings.explorer_api_key,
        }
        if page is not None and offset is not None:
            params["page"] = page
            params["offset"] = offset

        try:
            resp = await self.http.get(self.settings.explorer_url, params=params)
        except httpx.HTTPError as exc:
            raise self._fail(f"explorer unreachable: {exc}") from exc
        if resp.status_code >= 400:
            raise self._fail(f"explorer request failed: {resp.status_code}", resp.status_code)
        try:
            body = resp.json()
        except ValueError as exc:
            raise self._fail("explorer returned invalid JSON") from exc

        if str(body.get("status")) != "1":
            if body.get("message") == EMPTY_RESULT_MESSAGE:
                return []
            detail = body.get("result") or body.get("message") or "unknown error"
            raise self._fail(f"explorer error: {detail}")

        transfers = []
        for row in body.get("result") or []:
            try:
                transfers.append(TokenTransfer.model_validate(row))
            except ValidationError as exc:
                logger.warning("skipping malformed transfer row error=%s", exc)
        return transfers

    async def fetch_recent(self, address: str, limit: int) -> list[TokenTransfer]:
        return await self.fetch_page(address, page=1, offset=limit)

    async def fetch_all(self, address: str, page_size: int) -> list[TokenTransfer]:
        """Walk the whole history, newest first, until a short page comes back.

        The provider refuses `page * offset` beyond its result window, so once
        a window is used up the walk restarts at the oldest block seen so far.
        That boundary block is fetched twice; repeats are dropped by identity.
        """

        window = self.settings.explorer_result_window
        page_size = max(1, min(page_size, window))
        pages_per_window = max(1, window // page_size)
        transfers: list[TokenTransfer] = []
        seen: set[tuple[str, str, str, str, str]] = set()
        end_block: int | None = None
        while True:
            added = 0
            oldest: int | None = None
            for page in range(1, pages_per_window + 1):
                batch = await self.fetch_page(address, page=page, offset=page_size, end_block=end_block)
                for transfer in batch:
                    if transfer.identity not in seen:
                        seen.add(transfer.identity)
                        transfers.append(transfer)
                        added += 1
                    block = transfer.block
                    if block is not None and (oldest is None or block < oldest):
                        oldest = block
                if len(batch) < page_size:
                    return transfers
            if oldest is None or oldest == end_block or added == 0:
                logger.warning(
                    "history walk stopped early, block=%s holds more transfers than the result window",
                    oldest,
                )
                return transfers
            end_block = oldest
