"""Shared fixtures: in-memory fakes of the ledger and explorer."""

import base64
import json
from datetime import datetime, timezone
from itertools import count

import httpx
import pytest
from fastapi.testclient import TestClient

from payx.common.config import Settings
from payx.services.api.main import create_app


MONITORED = "0xMonitored"
USDC = "0xUSDC"
LEDGER_HOST = "ledger.test"
EXPLORER_HOST = "explorer.test"
PAY_TO = "0x" + "ab" * 20


def transfer(hash_, from_, value, to=MONITORED, contract=USDC, time_stamp="1700000000", block="100"):
    """Raw `tokentx` row as the explorer returns it."""

    return {
        "hash": hash_,
        "from": from_,
        "to": to,
        "contractAddress": contract,
        "value": value,
        "timeStamp": time_stamp,
        "blockNumber": block,
    }


def payment_header(nonce: str = "0x01", network: str = "base") -> str:
    """Base64 `X-PAYMENT` value carrying an exact-scheme USDC authorization."""

    payload = {
        "x402Version": 1,
        "scheme": "exact",
        "network": network,
        "payload": {
            "signature": "0xsig",
            "authorization": {
                "from": "0xPayer",
                "to": PAY_TO,
                "value": "10000",
                "validAfter": "0",
                "validBefore": "9999999999",
                "nonce": nonce,
            },
        },
    }
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


class FakeLedger:
    """Subset of PostgREST over one `payments` table."""

    def __init__(self, unique_hashes: bool = True) -> None:
        self.rows: list[dict] = []
        self.unique_hashes = unique_hashes
        self.unreachable = False
        self.fail_status: int | None = None
        self.fail_lookups = False
        self.fail_inserts_for: set[str] = set()
        self.requests: list[httpx.Request] = []
        self._ids = count(1)

    def add(self, wallet, usdc, payx, transaction_hash=None, created_at="2024-01-01T00:00:00+00:00"):
        row = {
            "id": next(self._ids),
            "wallet_address": wallet,
            "amount_usdc": usdc,
            "amount_payx": payx,
            "created_at": created_at,
        }
        if transaction_hash is not None:
            row["transaction_hash"] = transaction_hash
        self.rows.append(row)
        return row

    def _created(self, row: dict) -> datetime:
        return datetime.fromisoformat(row["created_at"].replace("Z", "+00:00"))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"message": "unavailable"})
        if request.method == "POST":
            return self._insert(json.loads(request.content))
        return self._select(request.url.params)

    def _insert(self, body: dict) -> httpx.Response:
        tx_hash = body.get("transaction_hash")
        if tx_hash in self.fail_inserts_for:
            return httpx.Response(500, json={"message": "insert failed"})
        if self.unique_hashes and tx_hash and any(r.get("transaction_hash") == tx_hash for r in self.rows):
            return httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})
        row = {"id": next(self._ids), **body}
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self.rows.append(row)
        return httpx.Response(201)

    def _select(self, params: httpx.QueryParams) -> httpx.Response:
        rows = list(self.rows)
        if "transaction_hash" in params:
            if self.fail_lookups:
                return httpx.Response(500, json={"message": "lookup failed"})
            value = params["transaction_hash"].removeprefix("eq.")
            rows = [r for r in rows if r.get("transaction_hash") == value]
        if "wallet_address" in params:
            value = params["wallet_address"].removeprefix("ilike.").lower()
            rows = [r for r in rows if r["wallet_address"].lower() == value]
        if params.get("order") == "created_at.desc":
            rows.sort(key=self._created, reverse=True)
        offset = int(params.get("offset", 0))
        limit = int(params["limit"]) if "limit" in params else None
        rows = rows[offset:] if limit is None else rows[offset : offset + limit]
        return httpx.Response(200, json=rows)


class FakeExplorer:
    """`tokentx` endpoint serving a fixed, newest-first transfer list."""

    def __init__(self) -> None:
        self.transfers: list[dict] = []
        self.status: str | None = None
        self.message = "OK"
        self.window = 10000
        self.requests: list[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status is not None:
            return httpx.Response(200, json={"status": self.status, "message": self.message, "result": self.message})
        params = request.url.params
        end_block = int(params.get("endblock", 99999999))
        rows = [r for r in self.transfers if int(r["blockNumber"]) <= end_block]
        if "page" in params and "offset" in params:
            page, size = int(params["page"]), int(params["offset"])
            if page * size > self.window:
                return httpx.Response(
                    200,
                    json={
                        "status": "0",
                        "message": "NOTOK",
                        "result": "Result window is too large, PageNo x Offset size must be less than or equal to 10000",
                    },
                )
            rows = rows[(page - 1) * size : page * size]
        if not rows:
            return httpx.Response(200, json={"status": "0", "message": "No transactions found", "result": []})
        return httpx.Response(200, json={"status": "1", "message": "OK", "result": rows})


class Upstream:
    def __init__(self) -> None:
        self.ledger = FakeLedger()
        self.explorer = FakeExplorer()
        self.transport = httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == LEDGER_HOST:
            return self.ledger.handle(request)
        if host == EXPLORER_HOST:
            return self.explorer.handle(request)
        raise AssertionError(f"unexpected outbound call to {request.url}")

    def http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)


def make_settings(**overrides) -> Settings:
    values = {
        "ledger_url": f"https://{LEDGER_HOST}",
        "ledger_api_key": "anon-key",
        "explorer_url": f"https://{EXPLORER_HOST}/v2/api",
        "explorer_api_key": "explorer-key",
        "pay_to_address": MONITORED,
        "usdc_contract_address": USDC,
        "paywall_enabled": False,
        "historical_page_size": 2,
        "sync_recent_limit": 2,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(settings, upstream):
    app = create_app(settings, transport=upstream.transport)
    with TestClient(app) as test_client:
        yield test_client
