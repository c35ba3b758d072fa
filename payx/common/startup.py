"""Startup-time helpers for safe config logging."""

from payx.common.config import Settings
from payx.common.logging import logger


def _safe_value(name: str, value: object) -> str:
    """Return a printable setting with simple redaction for secret-like names."""

    if value is None:
        return "<unset>"
    if any(secret in name.upper() for secret in ["KEY", "SECRET", "PASSWORD", "TOKEN"]):
        return "<redacted>"
    return str(value)


def log_startup_config(settings: Settings, keys: list[str]) -> None:
    """Log selected settings for quick troubleshooting."""

    config = {"service": settings.service_name}
    for key in keys:
        config[key.upper()] = _safe_value(key, getattr(settings, key, None))
    logger.info("startup_config=%s", config)
