import base64
import hashlib
import hmac
from typing import Optional


def _bytes(value: str | bytes) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def sha256_hex(payload: str | bytes) -> str:
    return hashlib.sha256(_bytes(payload)).hexdigest()


def sha512_hex(payload: str | bytes) -> str:
    return hashlib.sha512(_bytes(payload)).hexdigest()


def hmac_sha256_hex(secret: str, payload: str | bytes) -> str:
    return hmac.new(_bytes(secret), _bytes(payload), hashlib.sha256).hexdigest()


def hmac_sha256_b64(secret: str, payload: str | bytes) -> str:
    mac = hmac.new(_bytes(secret), _bytes(payload), hashlib.sha256).digest()
    return base64.b64encode(mac).decode("utf-8")


def basic_auth_header(secret_key: str) -> str:
    """Provider-style Basic auth: the secret is the username, password is empty."""
    token = base64.b64encode(f"{secret_key}:".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def secure_equals(expected: Optional[str], received: Optional[str]) -> bool:
    """Constant-time string comparison; missing material never matches."""
    if not expected or not received:
        return False
    return hmac.compare_digest(_bytes(expected), _bytes(received))
