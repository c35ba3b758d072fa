"""HTTP routes. Upstream failures come back as HTTP 200 with `success: false`."""

from fastapi import APIRouter, Header, HTTPException, Request

from payx.common.addresses import normalize_address
from payx.common.errors import DuplicatePaymentError, NotConfiguredError, UpstreamError
from payx.common.logging import logger, wallet_address_ctx
from payx.common.metrics import metrics_response
from payx.common.pricing import TIERS, tier_for_url
from payx.services.api.schemas import ManualPaymentRequest, PaymentConfirmation, WalletTracking

router = APIRouter()


def _services(request: Request):
    return request.app.state.services


def _wallet_or_400(address: str) -> str:
    try:
        wallet = normalize_address(address)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    wallet_address_ctx.set(wallet)
    return wallet


def enforce_admin_key(request: Request, x_api_key: str | None) -> None:
    """Reject admin calls without the configured key; open when no key is set."""

    expected = _services(request).settings.admin_api_key
    if expected and x_api_key != expected:
        raise HTTPException(status_code=401, detail="invalid API key")


@router.get("/")
def index(request: Request):
    """Service description with the purchasable tiers."""

    settings = _services(request).settings
    return {
        "name": "PAYx402",
        "network": settings.network,
        "payTo": settings.pay_to_address,
        "tiers": [
            {"path": tier.path, "price": tier.price_label, "tokens": tier.reward_label}
            for tier in TIERS.values()
        ],
    }


@router.get("/payment/{tier_name}")
async def tier_payment(tier_name: str, request: Request, wallet: str | None = None):
    """Paid route; reaching it means the paywall accepted the payment."""

    tier = TIERS.get(tier_name)
    if tier is None:
        raise HTTPException(status_code=404, detail="unknown payment tier")

    verified = getattr(request.state, "verify_response", None)
    payer = wallet or getattr(verified, "payer", None)
    if payer:
        await _services(request).recorder.record_tier_payment(_wallet_or_400(payer), tier)
    else:
        logger.info("paid request without wallet, nothing recorded tier=%s", tier.name)

    return {
        "success": True,
        "message": "Payment confirmed! Your PAYX tokens will be sent to your wallet soon.",
        "payment": {
            "amount": tier.price_label,
            "tokens": tier.reward_label,
            "status": "Payment recorded - Tokens will be distributed later",
        },
    }


@router.get("/balance/{wallet_address}")
async def balance(wallet_address: str, request: Request):
    wallet = _wallet_or_400(wallet_address)
    return await _services(request).balances.get_balance(wallet)


@router.post("/sync-blockchain")
async def sync_blockchain(request: Request, x_api_key: str | None = Header(default=None)):
    """Reconcile the most recent transfers to the receiving address."""

    enforce_admin_key(request, x_api_key)
    return await _services(request).sync.sync(historical=False)


@router.post("/sync-all-historical")
async def sync_all_historical(request: Request, x_api_key: str | None = Header(default=None)):
    """Reconcile the complete transfer history of the receiving address."""

    enforce_admin_key(request, x_api_key)
    return await _services(request).sync.sync(historical=True)


@router.post("/add-manual-payment")
async def add_manual_payment(
    req: ManualPaymentRequest,
    request: Request,
    x_api_key: str | None = Header(default=None),
):
    enforce_admin_key(request, x_api_key)
    wallet = _wallet_or_400(req.walletAddress)
    try:
        record = await _services(request).recorder.record_manual_payment(
            wallet,
            req.amountUsdc,
            amount_payx=req.amountPayx,
            transaction_hash=req.transactionHash,
            block_number=req.blockNumber,
            created_at=req.createdAt,
        )
    except NotConfiguredError as exc:
        return {"success": False, "error": str(exc)}
    except DuplicatePaymentError:
        return {"success": False, "error": "Transaction hash already recorded"}
    except UpstreamError as exc:
        return {"success": False, "error": f"Failed to record payment: {exc}"}
    return {"success": True, "payment": record.model_dump(mode="json")}


@router.get("/dashboard")
async def dashboard(request: Request):
    return await _services(request).balances.dashboard()


@router.post("/track-wallet")
def track_wallet(req: WalletTracking):
    """Log a wallet/payment-session pairing reported by the browser."""

    wallet = _wallet_or_400(req.wallet)
    logger.info("tracking wallet=%s payment_url=%s type=%s", wallet, req.paymentUrl, req.paymentType)
    return {"success": True, "message": "Wallet address tracked"}


@router.post("/payment-confirmation")
async def payment_confirmation(
    req: PaymentConfirmation,
    request: Request,
    x_api_key: str | None = Header(default=None),
):
    """Record the tier named by `paymentUrl` for the confirming wallet."""

    enforce_admin_key(request, x_api_key)
    logger.info("payment confirmation received url=%s status=%s", req.paymentUrl, req.status)
    services = _services(request)
    tier = tier_for_url(req.paymentUrl)
    if tier is None or not req.wallet or not services.ledger.configured:
        return {"success": True, "message": "Payment confirmation received"}

    wallet = _wallet_or_400(req.wallet)
    if not await services.recorder.record_tier_payment(wallet, tier, source="confirmation"):
        return {"success": False, "error": "Failed to record payment"}
    return {"success": True, "message": "Payment recorded successfully"}


@router.get("/ledger-status")
async def ledger_status(request: Request):
    """Check that the ledger store is configured and reachable."""

    services = _services(request)
    try:
        await services.ledger.ping()
    except NotConfiguredError as exc:
        return {"success": False, "error": str(exc)}
    except UpstreamError as exc:
        return {"success": False, "error": f"Ledger connection failed: {exc}"}
    return {"success": True, "message": "Ledger connection successful", "ledgerUrl": services.settings.ledger_url}


@router.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@router.get("/health")
def health():
    """Liveness check for the container orchestrator."""

    return {"ok": True}
