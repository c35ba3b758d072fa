"""x402 paywall wiring for the tier routes.

Each tier path gets the `x402` FastAPI `require_payment` middleware at the
tier price; the facilitator verifies the payment before the route runs and
settles it afterwards. The route reads the verified payer from
`request.state.verify_response`.
"""

import hashlib
from time import monotonic

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from x402.facilitator import FacilitatorConfig
from x402.fastapi.middleware import require_payment

from payx.common.config import Settings
from payx.common.logging import logger
from payx.common.metrics import paywall_decisions_total, upstream_failures_total
from payx.common.pricing import TIERS, Tier


def facilitator_config(settings: Settings) -> FacilitatorConfig:
    config: FacilitatorConfig = {"url": settings.facilitator_url}
    if settings.facilitator_api_key:
        headers = {"Authorization": f"Bearer {settings.facilitator_api_key}"}

        async def create_headers() -> dict[str, dict[str, str]]:
            return {"verify": headers, "settle": headers}

        config["create_headers"] = create_headers
    return config


class PaymentReplayGuard:
    """Lets one `X-PAYMENT` proof through a paid route at a time.

    A proof is claimed before verification and stays claimed for `ttl_seconds`
    once the route succeeds; a failed request releases it so the payer can
    retry. Claims live in process memory, keyed by a digest of the header.
    """

    def __init__(self, settings: Settings, paths: set[str], ttl_seconds: int) -> None:
        self.settings = settings
        self.paths = paths
        self.ttl_seconds = ttl_seconds
        self._claims: dict[str, float] = {}

    def _prune(self, now: float) -> None:
        for key in [k for k, expires in self._claims.items() if expires <= now]:
            del self._claims[key]

    async def __call__(self, request: Request, call_next):
        header = request.headers.get("X-PAYMENT")
        if not header or request.url.path not in self.paths:
            return await call_next(request)

        now = monotonic()
        self._prune(now)
        key = hashlib.sha256(header.encode("utf-8")).hexdigest()
        if key in self._claims:
            paywall_decisions_total.labels(
                service=self.settings.service_name, route=request.url.path, decision="replayed"
            ).inc()
            logger.warning("payment proof reused route=%s", request.url.path)
            return JSONResponse(status_code=409, content={"success": False, "error": "Payment already used"})

        self._claims[key] = now + self.ttl_seconds
        try:
            response = await call_next(request)
        except httpx.HTTPError as exc:
            self._claims.pop(key, None)
            upstream_failures_total.labels(service=self.settings.service_name, dependency="facilitator").inc()
            logger.error("facilitator unreachable route=%s error=%s", request.url.path, exc)
            return JSONResponse(status_code=502, content={"success": False, "error": "Payment facilitator unavailable"})
        decision = "paid" if response.status_code < 400 else "rejected"
        if decision == "rejected":
            self._claims.pop(key, None)
        paywall_decisions_total.labels(
            service=self.settings.service_name, route=request.url.path, decision=decision
        ).inc()
        return response


def install_paywall(app: FastAPI, settings: Settings, tiers: dict[str, Tier] = TIERS) -> None:
    """Gate every tier path; without a receiving address those paths answer 503."""

    paths = {tier.path for tier in tiers.values()}
    if not settings.pay_to_address:
        logger.error("paywall has no receiving address configured")

        @app.middleware("http")
        async def paywall_unconfigured(request: Request, call_next):
            if request.url.path in paths:
                return JSONResponse(
                    status_code=503,
                    content={"success": False, "error": "Receiving address not configured"},
                )
            return await call_next(request)

        return

    config = facilitator_config(settings)
    for tier in tiers.values():
        app.middleware("http")(
            require_payment(
                price=f"${tier.amount_usdc}",
                pay_to_address=settings.pay_to_address,
                path=tier.path,
                description=tier.description,
                mime_type="application/json",
                max_deadline_seconds=settings.payment_max_timeout_seconds,
                network=settings.network,
                facilitator_config=config,
            )
        )
    # Added last so it wraps the x402 middlewares.
    app.middleware("http")(PaymentReplayGuard(settings, paths, settings.payment_replay_ttl_seconds))
