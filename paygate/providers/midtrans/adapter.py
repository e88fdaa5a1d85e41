import logging
from typing import Any, Dict, Optional

import httpx

from ...errors import GatewayTransportError
from ...schemas.payment import (
    NormalizedWebhookResult,
    PaymentRequest,
    PaymentResponse,
    WebhookPayload,
    WebhookStatus,
)
from ...utils.dates import expires_in, parse_provider_time, utcnow
from ...utils.http import DEFAULT_TIMEOUT_SEC, post, read_json
from ...utils.ids import next_reference
from ...utils.security import basic_auth_header, secure_equals
from ..base import REFERENCE_PREFIX, unsupported_method
from .signature import notification_signature

logger = logging.getLogger(__name__)

PRODUCTION_URL = "https://api.midtrans.com"
SANDBOX_URL = "https://api.sandbox.midtrans.com"


class MidtransAdapter:
    """
    Midtrans Core API:
      - POST /v2/charge  (bank_transfer | echannel | gopay | shopeepay | qris)
    Notifications carry signature_key = sha512(order_id + status_code + gross_amount + server_key).
    """

    code = "midtrans"

    def __init__(
        self,
        server_key: str,
        *,
        is_production: bool,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        return_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._server_key = server_key
        self.is_production = is_production
        self.base_url = PRODUCTION_URL if is_production else SANDBOX_URL
        self._timeout_sec = timeout_sec
        self._return_url = return_url
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": basic_auth_header(self._server_key),
        }

    def _payment_section(self, method_code: str) -> Optional[Dict[str, Any]]:
        mc = method_code.lower()
        if mc.endswith("_va"):
            bank = mc[: -len("_va")]
            if not bank:
                return None
            if bank == "mandiri":
                # Mandiri bill payment is a separate payment type
                return {
                    "payment_type": "echannel",
                    "echannel": {"bill_info1": "Payment for:", "bill_info2": "Donation"},
                }
            return {"payment_type": "bank_transfer", "bank_transfer": {"bank": bank}}
        if mc in ("gopay", "shopeepay"):
            section: Dict[str, Any] = {"payment_type": mc}
            if self._return_url:
                section[mc] = {"enable_callback": True, "callback_url": self._return_url}
            return section
        if mc == "qris":
            return {"payment_type": "qris"}
        return None

    # ---- Adapter API ----
    async def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        try:
            return await self._charge(request)
        except Exception:
            logger.exception("midtrans: unexpected error creating payment for donation %s", request.donation_id)
            return PaymentResponse.fail("Unexpected payment gateway error")

    async def _charge(self, request: PaymentRequest) -> PaymentResponse:
        section = self._payment_section(request.method_code)
        if section is None:
            logger.warning("midtrans: unsupported method %r", request.method_code)
            return unsupported_method(request.method_code)

        order_id = next_reference(REFERENCE_PREFIX, request.donation_id)
        customer: Dict[str, Any] = {"first_name": request.donor_name}
        if request.donor_email:
            customer["email"] = request.donor_email
        if request.donor_phone:
            customer["phone"] = request.donor_phone

        body = {
            "transaction_details": {"order_id": order_id, "gross_amount": request.amount},
            "customer_details": customer,
            "custom_expiry": {"expiry_duration": request.expiry_minutes, "unit": "minute"},
            **section,
        }
        logger.info(
            "midtrans charge: order_id=%s payment_type=%s amount=%d",
            order_id, section["payment_type"], request.amount,
        )

        try:
            resp = await post(
                f"{self.base_url}/v2/charge",
                headers=self._headers(),
                json=body,
                timeout_sec=self._timeout_sec,
                transport=self._transport,
            )
        except GatewayTransportError as e:
            logger.warning("midtrans charge failed: order_id=%s details=%s", order_id, e.details)
            return PaymentResponse.fail(e.message)

        js = read_json(resp)
        status_code = str(js.get("status_code") or "")
        if status_code not in ("200", "201"):
            error = self._error_message(js, resp.status_code)
            logger.warning("midtrans rejected charge: order_id=%s status=%s error=%s", order_id, status_code, error)
            return PaymentResponse.fail(error)

        return PaymentResponse.ok(
            order_id,
            payment_code=self._payment_code(js),
            payment_url=self._action_url(js),
            qr_code=js.get("qr_string"),
            expired_at=expires_in(request.expiry_minutes),
        )

    @staticmethod
    def _error_message(js: Dict[str, Any], http_status: int) -> str:
        messages = js.get("validation_messages")
        if isinstance(messages, list) and messages:
            return "Validation error: " + "; ".join(str(m) for m in messages)
        if js.get("status_message"):
            return str(js["status_message"])
        if "raw_text" in js:
            return f"Midtrans API error: {http_status}"
        return "Payment creation failed"

    @staticmethod
    def _payment_code(js: Dict[str, Any]) -> Optional[str]:
        va_numbers = js.get("va_numbers")
        if isinstance(va_numbers, list) and va_numbers:
            return va_numbers[0].get("va_number")
        if js.get("permata_va_number"):
            return js["permata_va_number"]
        if js.get("bill_key"):
            return f"{js.get('biller_code') or ''}/{js['bill_key']}"
        return None

    @staticmethod
    def _action_url(js: Dict[str, Any]) -> Optional[str]:
        actions = js.get("actions")
        if not isinstance(actions, list) or not actions:
            return None
        for action in actions:
            if action.get("name") == "deeplink-redirect":
                return action.get("url")
        return actions[0].get("url")

    def verify_webhook(self, payload: WebhookPayload, signature: Optional[str] = None) -> bool:
        received = signature or payload.get("signature_key")
        fields = [payload.get("order_id"), payload.get("status_code"), payload.get("gross_amount")]
        if not received or not self._server_key or any(f is None for f in fields):
            logger.warning("midtrans webhook missing signature material: order_id=%s", payload.get("order_id"))
            return False
        order_id, status_code, gross_amount = (str(f) for f in fields)
        expected = notification_signature(order_id, status_code, gross_amount, self._server_key)
        return secure_equals(expected, str(received))

    def parse_webhook(self, payload: WebhookPayload) -> NormalizedWebhookResult:
        transaction_status = str(payload.get("transaction_status") or "").lower()
        fraud_status = str(payload.get("fraud_status") or "").lower()

        if transaction_status == "settlement" or (transaction_status == "capture" and fraud_status == "accept"):
            status = WebhookStatus.SUCCESS
        elif transaction_status == "expire":
            status = WebhookStatus.EXPIRED
        else:
            status = WebhookStatus.FAILED

        paid_at = None
        if status is WebhookStatus.SUCCESS:
            paid_at = parse_provider_time(payload.get("settlement_time")) or utcnow()

        return NormalizedWebhookResult(
            external_id=str(payload.get("order_id") or ""),
            status=status,
            paid_at=paid_at,
        )
