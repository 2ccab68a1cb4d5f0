"""Redaction helpers for connector errors and log lines."""

from __future__ import annotations

import re

_URL_USERINFO_RE = re.compile(r"([a-z][a-z0-9+.-]*://)([^@/\s]+)@", re.IGNORECASE)
_QUERY_SECRET_RE = re.compile(
    r"(?i)(token|secret|password|api_key|apikey|access_token|x-emby-token)=([^&\s]+)"
)
_BEARER_RE = re.compile(r"(?i)(bearer\s+)([A-Za-z0-9._~-]+)")
# Header dumps such as "X-Api-Key: abc123" or "'X-Emby-Token': 'abc123'".
_HEADER_SECRET_RE = re.compile(r"(?i)(['\"]?x-(?:api-key|emby-token)['\"]?\s*[:=]\s*['\"]?)([^'\"\s,}]+)")


def redact_secrets(text: str) -> str:
    """Redact URL credentials, secret query params, bearer tokens and API key headers."""
    if not text:
        return text
    redacted = _URL_USERINFO_RE.sub(r"\1***@", text)
    redacted = _QUERY_SECRET_RE.sub(r"\1=***", redacted)
    redacted = _BEARER_RE.sub(r"\1***", redacted)
    redacted = _HEADER_SECRET_RE.sub(r"\1***", redacted)
    return redacted
