"""Logging setup shared by the API process and embedding applications."""

from __future__ import annotations

import logging

from unified_search.core.config import settings
from unified_search.utils.redaction import redact_secrets

LOG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"


class RedactingFilter(logging.Filter):
    """Scrub credentials from fully rendered log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT, force=True)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(existing, RedactingFilter) for existing in handler.filters):
            handler.addFilter(RedactingFilter())