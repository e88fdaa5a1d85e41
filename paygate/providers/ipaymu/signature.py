"""iPaymu v2 request and notification signatures."""

import json
from typing import Any, Dict

from ...utils.security import hmac_sha256_b64, hmac_sha256_hex, sha256_hex


def compact_json(body: Dict[str, Any]) -> str:
    """Serialize the way iPaymu hashes bodies: no whitespace, key order kept, UTF-8 as is."""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def string_to_sign(method: str, va: str, body_json: str, api_key: str) -> str:
    """Format: METHOD:va:lowercase_hex(sha256(body)):api_key"""
    body_hash = sha256_hex(body_json).lower()
    return f"{method.upper()}:{va}:{body_hash}:{api_key}"


def request_signature(method: str, va: str, body_json: str, api_key: str) -> str:
    """HMAC-SHA256 of the string-to-sign keyed with the API key, lowercase hex.

    ``body_json`` must be byte-identical to the body that is sent.
    """
    return hmac_sha256_hex(api_key, string_to_sign(method, va, body_json, api_key))


def notification_signature(payload: Dict[str, Any], api_key: str) -> str:
    return hmac_sha256_b64(api_key, compact_json(payload))
