import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from ..providers.base import GatewayAdapter
from ..schemas.payment import PaymentRequest
from .deps import get_adapter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments")


@router.post("/{gateway}")
async def create_payment(request: PaymentRequest, adapter: GatewayAdapter = Depends(get_adapter)) -> Dict[str, Any]:
    """
    Create a payment on the given gateway.
    200 -> {success, external_id, payment_code, payment_url, qr_code, expired_at}
    400 -> {"detail": "<provider or routing error>"}
    """
    result = await adapter.create_payment(request)
    if not result.success:
        logger.info("payment not created: gateway=%s donation=%s error=%s", adapter.code, request.donation_id, result.error)
        raise HTTPException(status_code=400, detail=result.error)
    return result.model_dump(mode="json", exclude={"error"})
