import logging
import math
from typing import Any, Dict, Optional, Tuple

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
from ...utils.dates import expires_in, parse_provider_time, utcnow
from ...utils.http import DEFAULT_TIMEOUT_SEC, post, read_json
from ...utils.ids import next_reference
from ...utils.security import secure_equals
from ..base import PLACEHOLDER_EMAIL, PLACEHOLDER_PHONE, REFERENCE_PREFIX, unsupported_method
from .schemas import DirectPaymentResponse
from .signature import compact_json, notification_signature, request_signature

logger = logging.getLogger(__name__)

PRODUCTION_URL = "https://app.ipaymu.com/api/v2"
SANDBOX_URL = "https://sandbox.ipaymu.com/api/v2"

PAYMENT_METHODS = {"va", "banktransfer", "qris", "cstore", "cc", "online", "cod"}
CSTORE_CHANNELS = {"gopay", "ovo", "dana", "linkaja", "shopeepay", "alfamart", "indomaret"}

_SUCCESS = {"success", "paid", "berhasil"}
_EXPIRED = {"expired", "kadaluarsa"}


def parse_method_code(method_code: str) -> Optional[Tuple[str, str]]:
    """Map a method code to iPaymu (paymentMethod, paymentChannel).

    Accepts ``method:channel`` ("va:bca", "qris:qris", "cstore:gopay") and the
    short forms "bca_va", "qris", "gopay", "cc", "online", "cod".
    """
    mc = method_code.strip().lower()
    if ":" in mc:
        method, _, channel = mc.partition(":")
        if method in PAYMENT_METHODS and channel:
            return method, channel
        return None
    if mc.endswith("_va") and len(mc) > len("_va"):
        return "va", mc[: -len("_va")]
    if mc == "qris":
        return "qris", "qris"
    if mc in CSTORE_CHANNELS:
        return "cstore", mc
    if mc in ("cc", "credit_card"):
        return "cc", "cc"
    if mc in ("online", "cod"):
        return mc, mc
    return None


class IpaymuAdapter:
    """
    iPaymu v2 direct payment:
      - POST /payment/direct  (va | qris | cstore | cc | online | cod)
    Every request is signed: headers ``va`` and ``signature`` (see signature.py).
    """

    code = "ipaymu"

    def __init__(
        self,
        va: str,
        api_key: str,
        *,
        is_production: bool,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        notify_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._va = va
        self._api_key = api_key
        self.is_production = is_production
        self.base_url = PRODUCTION_URL if is_production else SANDBOX_URL
        self._timeout_sec = timeout_sec
        self._notify_url = notify_url
        self._transport = transport

    def _headers(self, body_json: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "va": self._va,
            "signature": request_signature("POST", self._va, body_json, self._api_key),
        }

    # ---- Adapter API ----
    async def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        try:
            return await self._direct_payment(request)
        except Exception:
            logger.exception("ipaymu: unexpected error creating payment for donation %s", request.donation_id)
            return PaymentResponse.fail("Unexpected payment gateway error")

    async def _direct_payment(self, request: PaymentRequest) -> PaymentResponse:
        parsed = parse_method_code(request.method_code)
        if parsed is None:
            logger.warning("ipaymu: unsupported method %r", request.method_code)
            return unsupported_method(request.method_code)
        payment_method, payment_channel = parsed

        reference = next_reference(REFERENCE_PREFIX, request.donation_id)
        body: Dict[str, Any] = {
            "account": self._va,
            "name": request.donor_name,
            "email": request.donor_email or PLACEHOLDER_EMAIL,
            "phone": request.donor_phone or PLACEHOLDER_PHONE,
            "amount": request.amount,
            "expired": math.ceil(request.expiry_minutes / 60),
            "referenceId": reference,
            "paymentMethod": payment_method,
            "paymentChannel": payment_channel,
            "product": [f"Donation #{request.donation_id}"],
            "qty": [1],
            "price": [request.amount],
        }
        if self._notify_url:
            body["notifyUrl"] = self._notify_url

        # the signed string and the sent bytes must be the same
        body_json = compact_json(body)
        logger.info(
            "ipaymu direct payment: reference=%s method=%s channel=%s amount=%d",
            reference, payment_method, payment_channel, request.amount,
        )

        try:
            resp = await post(
                f"{self.base_url}/payment/direct",
                headers=self._headers(body_json),
                content=body_json.encode("utf-8"),
                timeout_sec=self._timeout_sec,
                transport=self._transport,
            )
        except GatewayTransportError as e:
            logger.warning("ipaymu request failed: reference=%s details=%s", reference, e.details)
            return PaymentResponse.fail(e.message)

        js = read_json(resp)
        try:
            result = DirectPaymentResponse.model_validate(js)
        except ValidationError:
            logger.warning("ipaymu returned an unreadable body: http=%s", resp.status_code)
            return PaymentResponse.fail(f"iPaymu API error: {resp.status_code}")

        if not (result.success and result.data):
            logger.warning("ipaymu rejected payment: reference=%s status=%s message=%s", reference, result.status, result.message)
            return PaymentResponse.fail(result.message or "Payment creation failed")

        data = result.data
        is_qr = payment_method == "qris"
        return PaymentResponse.ok(
            data.reference_id or reference,
            payment_code=None if is_qr else data.payment_no,
            payment_url=data.payment_url,
            qr_code=(data.qr_string or data.qr_image or data.payment_no) if is_qr else None,
            expired_at=parse_provider_time(data.expired) or expires_in(request.expiry_minutes),
        )

    def verify_webhook(self, payload: WebhookPayload, signature: Optional[str] = None) -> bool:
        if not signature or not self._api_key:
            logger.warning("ipaymu webhook without signature")
            return False
        return secure_equals(notification_signature(payload, self._api_key), signature)

    def parse_webhook(self, payload: WebhookPayload) -> NormalizedWebhookResult:
        raw_status = str(payload.get("status") or "").lower()
        external_id = payload.get("referenceId") or payload.get("reference_id") or ""

        if raw_status in _SUCCESS:
            status = WebhookStatus.SUCCESS
        elif raw_status in _EXPIRED:
            status = WebhookStatus.EXPIRED
        else:
            status = WebhookStatus.FAILED

        paid_at = None
        if status is WebhookStatus.SUCCESS:
            paid_at = parse_provider_time(payload.get("paid_at")) or utcnow()

        return NormalizedWebhookResult(external_id=str(external_id), status=status, paid_at=paid_at)
