"""PAYx402 API: paywalled tier routes, balances and chain reconciliation.

Run with `uvicorn payx.services.api.main:app`.
"""

from contextlib import asynccontextmanager
from time import perf_counter

import httpx
from fastapi import FastAPI, Request

from payx.common.config import Settings
from payx.common.logging import configure_logging
from payx.common.metrics import http_request_duration_seconds, http_requests_total
from payx.common.startup import log_startup_config
from payx.common.tracing import instrument_app, setup_tracing
from payx.services.api.routes import router
from payx.services.balance.service import BalanceAggregator
from payx.services.chain.explorer import TransactionLogClient
from payx.services.ledger.client import LedgerClient
from payx.services.ledger.service import PaymentRecorder
from payx.services.paywall.middleware import install_paywall
from payx.services.reconciler.service import BlockchainSyncService, PaymentReconciler


class Services:
    """Components wired once per app from a single `Settings` instance."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient) -> None:
        self.settings = settings
        self.http = http
        self.ledger = LedgerClient(settings, http)
        self.explorer = TransactionLogClient(settings, http)
        self.recorder = PaymentRecorder(self.ledger, settings.service_name)
        self.reconciler = PaymentReconciler(self.ledger, settings.service_name, settings.usdc_decimals)
        self.sync = BlockchainSyncService(settings, self.explorer, self.reconciler)
        self.balances = BalanceAggregator(self.ledger)


def create_app(settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the app; `transport` replaces the network for outbound HTTP calls."""

    settings = settings or Settings()
    configure_logging(settings)
    setup_tracing(settings)
    log_startup_config(
        settings,
        [
            "service_name",
            "ledger_url",
            "ledger_api_key",
            "explorer_url",
            "explorer_api_key",
            "chain_id",
            "pay_to_address",
            "paywall_enabled",
            "facilitator_url",
            "admin_api_key",
        ],
    )
    http = httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport)
    services = Services(settings, http)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Close the shared outbound HTTP client on shutdown."""

        yield
        await http.aclose()

    app = FastAPI(title="PAYx402", lifespan=lifespan)
    app.state.services = services
    app.include_router(router)

    if settings.paywall_enabled:
        install_paywall(app, settings)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    instrument_app(app)
    return app


app = create_app()
