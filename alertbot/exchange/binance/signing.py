from __future__ import annotations

import hashlib
import hmac
from urllib.parse import urlencode


def build_query(params: dict) -> str:
    # Binance signs the exact query string it receives; keep insertion order
    return urlencode(params, doseq=True)


def sign(secret: str, query_string: str) -> str:
    """HMAC-SHA256 signature for USDT-M futures signed endpoints."""
    return hmac.new(
        secret.encode("utf-8"),
        query_string.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def signed_query(secret: str, params: dict) -> str:
    query = build_query(params)
    return f"{query}&signature={sign(secret, query)}"
