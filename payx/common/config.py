"""Environment-driven settings for the PAYx402 service.

The process builds one `Settings` instance at startup and hands it to every
component (see `.env.example`).
"""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "payx-api"
    log_level: str = "INFO"

    # Ledger store (Supabase / PostgREST)
    ledger_url: str | None = None
    ledger_api_key: str | None = None
    ledger_bearer_token: str | None = None
    ledger_table: str = "payments"

    # Transaction-log provider (Etherscan v2 compatible)
    explorer_url: str = "https://api.etherscan.io/v2/api"
    explorer_api_key: str | None = None
    chain_id: int = 8453

    # Monitored receiving address and asset
    pay_to_address: str | None = None
    usdc_contract_address: str = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
    usdc_decimals: int = 6
    min_payment_usdc: Decimal = Decimal("0.01")
    sync_recent_limit: int = 100
    historical_page_size: int = 1000
    # page * offset cap enforced by the provider
    explorer_result_window: int = 10000

    # Paywall
    paywall_enabled: bool = True
    network: str = "base"
    facilitator_url: str = "https://x402.org/facilitator"
    facilitator_api_key: str | None = None
    payment_max_timeout_seconds: int = 60
    payment_replay_ttl_seconds: int = 3600

    admin_api_key: str | None = None
    http_timeout_seconds: float = 10.0
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def ledger_configured(self) -> bool:
        return bool(self.ledger_url and self.ledger_api_key)

    @property
    def ledger_token(self) -> str | None:
        """Bearer token for the ledger; the API key doubles as one when unset."""

        return self.ledger_bearer_token or self.ledger_api_key
