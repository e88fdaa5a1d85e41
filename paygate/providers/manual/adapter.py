import logging
from datetime import timedelta
from typing import Optional

from ...schemas.payment import (
    NormalizedWebhookResult,
    PaymentRequest,
    PaymentResponse,
    WebhookPayload,
    WebhookStatus,
)
from ...utils.dates import parse_provider_time, utcnow
from ...utils.ids import next_reference

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "MANUAL"
EXPIRY = timedelta(hours=48)


class ManualAdapter:
    """
    Administrator-recorded payments (cash, manually confirmed transfers).
    No provider and no network call. State changes come from the admin
    backend, never from a public endpoint, so verify_webhook trusts them.
    """

    code = "manual"

    async def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        reference = next_reference(REFERENCE_PREFIX, request.donation_id)
        logger.info("manual payment recorded: reference=%s amount=%d", reference, request.amount)
        return PaymentResponse.ok(reference, expired_at=utcnow() + EXPIRY)

    def verify_webhook(self, payload: WebhookPayload, signature: Optional[str] = None) -> bool:
        return True

    def parse_webhook(self, payload: WebhookPayload) -> NormalizedWebhookResult:
        try:
            status = WebhookStatus(str(payload.get("status") or "").lower())
        except ValueError:
            status = WebhookStatus.FAILED

        paid_at = None
        if status is WebhookStatus.SUCCESS:
            paid_at = parse_provider_time(payload.get("paid_at")) or utcnow()

        return NormalizedWebhookResult(
            external_id=str(payload.get("external_id") or ""),
            status=status,
            paid_at=paid_at,
        )
