from typing import Optional, Protocol

from ..schemas.payment import NormalizedWebhookResult, PaymentRequest, PaymentResponse, WebhookPayload

# Prefix of every reference we generate for a donation payment.
REFERENCE_PREFIX = "DNT"

# Sent when the donor left contact fields empty; some providers require them.
PLACEHOLDER_EMAIL = "donor@bantuanku.org"
PLACEHOLDER_PHONE = "08123456789"


class GatewayAdapter(Protocol):
    code: str

    async def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        ...

    # Must return False whenever the material needed to check is missing.
    def verify_webhook(self, payload: WebhookPayload, signature: Optional[str] = None) -> bool:
        ...

    # Only for payloads that passed verify_webhook.
    def parse_webhook(self, payload: WebhookPayload) -> NormalizedWebhookResult:
        ...


def unsupported_method(method_code: str) -> PaymentResponse:
    return PaymentResponse.fail(f"Unsupported payment method: {method_code}")
