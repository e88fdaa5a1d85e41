import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ..providers.base import GatewayAdapter
from .deps import get_adapter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")

# Headers providers put their token/signature in, first match wins
SIGNATURE_HEADERS = ("X-Callback-Token", "X-Signature", "X-Ipaymu-Signature")

# The manual adapter trusts every payload; it must never be reachable from here.
WEBHOOK_GATEWAYS = {"midtrans", "xendit", "ipaymu", "flip"}


async def _read_payload(request: Request) -> Dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be an object")
    return payload


def _signature(request: Request) -> Optional[str]:
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return None


@router.post("/{gateway}")
async def receive_webhook(request: Request, adapter: GatewayAdapter = Depends(get_adapter)) -> Dict[str, Any]:
    """
    Verify and normalize a provider callback. Applying the status to the
    donation (and dropping duplicates by external_id) is up to the caller.
    """
    if adapter.code not in WEBHOOK_GATEWAYS:
        raise HTTPException(status_code=404, detail="Gateway does not accept webhooks")

    payload = await _read_payload(request)
    if not adapter.verify_webhook(payload, _signature(request)):
        logger.warning("rejected %s webhook: invalid signature", adapter.code)
        raise HTTPException(status_code=401, detail="Invalid signature")

    result = adapter.parse_webhook(payload)
    logger.info("%s webhook: external_id=%s status=%s", adapter.code, result.external_id, result.status.value)
    return {"received": True, **result.model_dump(mode="json")}
