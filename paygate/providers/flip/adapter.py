import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from ...errors import GatewayTransportError
from ...schemas.payment import (
    NormalizedWebhookResult,
    PaymentRequest,
    PaymentResponse,
    WebhookPayload,
    WebhookStatus,
)
from ...utils.dates import WIB, expires_in, parse_provider_time, utcnow
from ...utils.http import DEFAULT_TIMEOUT_SEC, post, read_json
from ...utils.security import basic_auth_header, secure_equals
from ..base import PLACEHOLDER_EMAIL, PLACEHOLDER_PHONE, unsupported_method
from .schemas import BillResponse

logger = logging.getLogger(__name__)

PRODUCTION_URL = "https://bigflip.id/api/v2"
SANDBOX_URL = "https://bigflip.id/big_sandbox_api/v2"

TITLE_MAX_LEN = 55
LINK_METHODS = {"flip", "link"}
WALLET_CHANNELS = {"qris", "ovo", "dana", "shopeepay", "linkaja"}

INACTIVE_MESSAGE = "Payment created but inactive - transaction may already exist"


def format_errors(errors: Any) -> str:
    """Flatten Flip validation errors into ``field: msg, msg; field: msg``."""
    if isinstance(errors, dict):
        parts = []
        for field, messages in errors.items():
            if isinstance(messages, list):
                messages = ", ".join(str(m) for m in messages)
            parts.append(f"{field}: {messages}")
        return "; ".join(parts)
    if isinstance(errors, list):
        return "; ".join(
            f"{e.get('attribute')}: {e.get('message')}" if isinstance(e, dict) else str(e)
            for e in errors
        )
    return str(errors)


class FlipAdapter:
    """
    Flip "Payment Without Form" (form-urlencoded):
      - POST /pwf/bill  step=2 -> payment link, donor picks the channel on Flip
      - POST /pwf/bill  step=3 -> VA number or QRIS/e-wallet data directly
    Callbacks carry the validation token configured in the Flip dashboard.
    """

    code = "flip"

    def __init__(
        self,
        secret_key: str,
        validation_token: Optional[str] = None,
        *,
        is_production: bool,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        return_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._secret_key = secret_key
        self._validation_token = validation_token or ""
        self.is_production = is_production
        self.base_url = PRODUCTION_URL if is_production else SANDBOX_URL
        self._timeout_sec = timeout_sec
        self._return_url = return_url
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
            "Authorization": basic_auth_header(self._secret_key),
        }

    @staticmethod
    def _channel_fields(method_code: str) -> Optional[Dict[str, str]]:
        mc = method_code.lower()
        if mc in LINK_METHODS:
            return {"step": "2"}
        if mc.endswith("_va") and len(mc) > len("_va"):
            return {"step": "3", "sender_bank": mc[: -len("_va")], "sender_bank_type": "virtual_account"}
        if mc in WALLET_CHANNELS:
            return {"step": "3", "sender_bank": mc, "sender_bank_type": "wallet_account"}
        return None

    # ---- Adapter API ----
    async def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        try:
            return await self._create_bill(request)
        except Exception:
            logger.exception("flip: unexpected error creating payment for donation %s", request.donation_id)
            return PaymentResponse.fail("Unexpected payment gateway error")

    async def _create_bill(self, request: PaymentRequest) -> PaymentResponse:
        channel = self._channel_fields(request.method_code)
        if channel is None:
            logger.warning("flip: unsupported method %r", request.method_code)
            return unsupported_method(request.method_code)

        expired_at = expires_in(request.expiry_minutes)
        form = {
            "title": f"Donasi #{request.donation_id}"[:TITLE_MAX_LEN],
            "type": "SINGLE",
            "amount": str(request.amount),
            "sender_name": request.donor_name or "Donor",
            "sender_email": request.donor_email or PLACEHOLDER_EMAIL,
            "sender_phone_number": request.donor_phone or PLACEHOLDER_PHONE,
            "expired_date": expired_at.astimezone(WIB).strftime("%Y-%m-%d %H:%M"),
            **channel,
        }
        if self._return_url:
            form["redirect_url"] = self._return_url
        logger.info(
            "flip bill: donation=%s step=%s sender_bank=%s amount=%d",
            request.donation_id, channel["step"], channel.get("sender_bank", "-"), request.amount,
        )

        try:
            resp = await post(
                f"{self.base_url}/pwf/bill",
                headers=self._headers(),
                data=form,
                timeout_sec=self._timeout_sec,
                transport=self._transport,
            )
        except GatewayTransportError as e:
            logger.warning("flip request failed: donation=%s details=%s", request.donation_id, e.details)
            return PaymentResponse.fail(e.message)

        js = read_json(resp)
        try:
            bill = BillResponse.model_validate(js)
        except ValidationError:
            bill = BillResponse()

        if bill.errors:
            message = f"Validation error: {format_errors(bill.errors)}"
            logger.warning("flip rejected bill: http=%s %s", resp.status_code, message)
            return PaymentResponse.fail(message)

        if not resp.is_success:
            logger.warning("flip API error: http=%s body=%s", resp.status_code, resp.text[:500])
            return PaymentResponse.fail(f"Flip API error: {resp.status_code} - {resp.text}")

        if bill.status == "INACTIVE":
            logger.warning("flip bill inactive: link_id=%s", bill.link_id)
            return PaymentResponse.fail(INACTIVE_MESSAGE)
        if not (bill.link_id and bill.link_url and bill.status == "ACTIVE"):
            return PaymentResponse.fail("Payment creation failed - no active link returned")

        link_id = str(bill.link_id)
        url = bill.link_url if "://" in bill.link_url else f"https://{bill.link_url}"
        expired = parse_provider_time(bill.expired_date) or expired_at

        account = bill.bill_payment.receiver_bank_account if bill.bill_payment else None
        if account and account.qr_code_data:
            return PaymentResponse.ok(link_id, payment_url=url, qr_code=account.qr_code_data, expired_at=expired)
        if account and account.account_number:
            return PaymentResponse.ok(link_id, payment_code=account.account_number, payment_url=url, expired_at=expired)
        # step 2: the link id is the only reference the donor sees
        return PaymentResponse.ok(link_id, payment_code=link_id, payment_url=url, expired_at=expired)

    def verify_webhook(self, payload: WebhookPayload, signature: Optional[str] = None) -> bool:
        token = signature or payload.get("token")
        if not token or not self._validation_token:
            logger.warning("flip webhook without validation token")
            return False
        return secure_equals(self._validation_token, str(token))

    @staticmethod
    def _unwrap(payload: WebhookPayload) -> Dict[str, Any]:
        # callbacks arrive as form fields: data=<json>, token=<validation token>
        data = payload.get("data")
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                data = None
        return data if isinstance(data, dict) else payload

    def parse_webhook(self, payload: WebhookPayload) -> NormalizedWebhookResult:
        body = self._unwrap(payload)
        bill_link_id = body.get("bill_link_id") or body.get("id") or body.get("link_id")
        raw_status = str(body.get("status") or "").upper()

        if raw_status == "SUCCESSFUL":
            status = WebhookStatus.SUCCESS
        elif raw_status == "EXPIRED":
            status = WebhookStatus.EXPIRED
        else:
            status = WebhookStatus.FAILED

        paid_at = None
        if status is WebhookStatus.SUCCESS:
            # created_at is when Flip recorded the successful transfer
            paid_at = parse_provider_time(body.get("created_at")) or utcnow()

        return NormalizedWebhookResult(
            external_id=str(bill_link_id) if bill_link_id is not None else "",
            status=status,
            paid_at=paid_at,
        )
