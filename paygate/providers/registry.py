from typing import Callable, Dict, Optional

import httpx

from ..errors import GatewayConfigError, UnknownGatewayError
from ..schemas.payment import GatewayCredentials
from ..utils.http import DEFAULT_TIMEOUT_SEC
from .base import GatewayAdapter
from .flip.adapter import FlipAdapter
from .ipaymu.adapter import IpaymuAdapter
from .manual.adapter import ManualAdapter
from .midtrans.adapter import MidtransAdapter
from .xendit.adapter import XenditAdapter

# Aliases -> canonical gateway codes
_aliases = {
    "midtrans": "midtrans",
    "xendit": "xendit",
    "ipaymu": "ipaymu",
    "i-paymu": "ipaymu",
    "flip": "flip",
    "bigflip": "flip",
    "manual": "manual",
    "offline": "manual",
    "cash": "manual",
}


def _require(code: str, **secrets: Optional[str]) -> None:
    missing = [name for name, value in secrets.items() if not value]
    if missing:
        raise GatewayConfigError(
            f"{code} credentials not configured: missing {', '.join(missing)}",
            details={"gateway": code, "missing": missing},
        )


def _midtrans(creds: GatewayCredentials, **opts) -> GatewayAdapter:
    _require("midtrans", server_key=creds.server_key)
    return MidtransAdapter(creds.server_key, is_production=opts["is_production"], timeout_sec=opts["timeout_sec"],
                           return_url=opts["return_url"], transport=opts["transport"])


def _xendit(creds: GatewayCredentials, **opts) -> GatewayAdapter:
    _require("xendit", secret_key=creds.secret_key)
    return XenditAdapter(creds.secret_key, creds.callback_token, is_production=opts["is_production"],
                         timeout_sec=opts["timeout_sec"], return_url=opts["return_url"], transport=opts["transport"])


def _ipaymu(creds: GatewayCredentials, **opts) -> GatewayAdapter:
    # iPaymu's merchant account is its VA number
    _require("ipaymu", merchant_id=creds.merchant_id, secret_key=creds.secret_key)
    return IpaymuAdapter(creds.merchant_id, creds.secret_key, is_production=opts["is_production"],
                         timeout_sec=opts["timeout_sec"], notify_url=opts["notify_url"], transport=opts["transport"])


def _flip(creds: GatewayCredentials, **opts) -> GatewayAdapter:
    _require("flip", secret_key=creds.secret_key)
    return FlipAdapter(creds.secret_key, creds.validation_token, is_production=opts["is_production"],
                       timeout_sec=opts["timeout_sec"], return_url=opts["return_url"], transport=opts["transport"])


def _manual(creds: GatewayCredentials, **opts) -> GatewayAdapter:
    return ManualAdapter()


_builders: Dict[str, Callable[..., GatewayAdapter]] = {
    "midtrans": _midtrans,
    "xendit": _xendit,
    "ipaymu": _ipaymu,
    "flip": _flip,
    "manual": _manual,
}

SUPPORTED_GATEWAYS = tuple(_builders)


def resolve_gateway_code(code: str | None) -> str:
    key = _aliases.get((code or "").strip().lower())
    if key is None:
        raise UnknownGatewayError(f"Unknown payment gateway: {code!r}", details={"gateway": code})
    return key


def create_adapter(
    code: str,
    credentials: GatewayCredentials,
    *,
    is_production: bool,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
    notify_url: Optional[str] = None,
    return_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GatewayAdapter:
    """Build the adapter registered for ``code``.

    Raises UnknownGatewayError for codes not in the registry and
    GatewayConfigError when a required secret is missing.
    """
    key = resolve_gateway_code(code)
    return _builders[key](
        credentials,
        is_production=is_production,
        timeout_sec=timeout_sec,
        notify_url=notify_url,
        return_url=return_url,
        transport=transport,
    )
