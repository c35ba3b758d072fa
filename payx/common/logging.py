"""Structured JSON logging with request/payment context fields."""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from payx.common.config import Settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
wallet_address_ctx: ContextVar[str] = ContextVar("wallet_address", default="")
transaction_hash_ctx: ContextVar[str] = ContextVar("transaction_hash", default="")


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        record.trace_id = trace_id_ctx.get()
        record.wallet_address = wallet_address_ctx.get()
        record.transaction_hash = transaction_hash_ctx.get()
        return True


def configure_logging(settings: Settings) -> None:
    """Configure root logger once per process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter(settings.service_name)
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(wallet_address)s "
        "%(transaction_hash)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)


logger = logging.getLogger("payx")
