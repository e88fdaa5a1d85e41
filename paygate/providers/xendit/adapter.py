import json
import logging
from datetime import datetime
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

logger = logging.getLogger(__name__)

# Xendit has one host; test-mode secret keys route to the sandbox.
PRODUCTION_URL = "https://api.xendit.co"
SANDBOX_URL = "https://api.xendit.co"

QR_API_VERSION = "2022-07-31"

EWALLET_CHANNELS = {"ovo", "dana", "linkaja", "shopeepay", "astrapay"}

_SUCCESS = {"PAID", "SETTLED", "SUCCEEDED", "COMPLETED"}
_EXPIRED = {"EXPIRED"}


class XenditAdapter:
    """
    Xendit:
      - POST /callback_virtual_accounts  (<bank>_va)
      - POST /ewallets/charges           (ovo, dana, linkaja, shopeepay, astrapay)
      - POST /qr_codes                   (qris)
    Callbacks are authenticated by the x-callback-token header.

    Fixed-VA payment callbacks carry no ``status`` and normalize to failed;
    callers treating them as paid must check for ``payment_id`` themselves.
    """

    code = "xendit"

    def __init__(
        self,
        secret_key: str,
        callback_token: Optional[str] = None,
        *,
        is_production: bool,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        return_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._secret_key = secret_key
        self._callback_token = callback_token or ""
        self.is_production = is_production
        self.base_url = PRODUCTION_URL if is_production else SANDBOX_URL
        self._timeout_sec = timeout_sec
        self._return_url = (return_url or "").rstrip("/")
        self._transport = transport

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Authorization": basic_auth_header(self._secret_key)}
        if extra:
            headers.update(extra)
        return headers

    async def _post(self, path: str, body: Dict[str, Any], extra_headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        return await post(
            f"{self.base_url}{path}",
            headers=self._headers(extra_headers),
            json=body,
            timeout_sec=self._timeout_sec,
            transport=self._transport,
        )

    # ---- Adapter API ----
    async def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        mc = request.method_code.lower()
        reference = next_reference(REFERENCE_PREFIX, request.donation_id)
        expired_at = expires_in(request.expiry_minutes)

        try:
            if mc.endswith("_va") and len(mc) > len("_va"):
                return await self._create_va(request, reference, expired_at)
            if mc in EWALLET_CHANNELS:
                return await self._create_ewallet(request, reference, expired_at)
            if mc == "qris":
                return await self._create_qris(request, reference, expired_at)
        except GatewayTransportError as e:
            logger.warning("xendit request failed: reference=%s details=%s", reference, e.details)
            return PaymentResponse.fail(e.message)
        except Exception:
            logger.exception("xendit: unexpected error creating payment for donation %s", request.donation_id)
            return PaymentResponse.fail("Unexpected payment gateway error")

        logger.warning("xendit: unsupported method %r", request.method_code)
        return unsupported_method(request.method_code)

    async def _create_va(self, request: PaymentRequest, reference: str, expired_at: datetime) -> PaymentResponse:
        bank_code = request.method_code[: -len("_va")].upper()
        body = {
            "external_id": reference,
            "bank_code": bank_code,
            "name": request.donor_name[:50],
            "expected_amount": request.amount,
            "expiration_date": expired_at.isoformat(),
            "is_closed": True,
            "is_single_use": True,
        }
        logger.info("xendit VA: reference=%s bank=%s amount=%d", reference, bank_code, request.amount)
        resp = await self._post("/callback_virtual_accounts", body)
        js = read_json(resp)
        if resp.is_success and js.get("id"):
            return PaymentResponse.ok(reference, payment_code=js.get("account_number"), expired_at=expired_at)
        return self._failure(js, resp, "VA creation failed")

    async def _create_ewallet(self, request: PaymentRequest, reference: str, expired_at: datetime) -> PaymentResponse:
        channel = request.method_code.upper()
        if channel == "OVO" and not request.donor_phone:
            return PaymentResponse.fail("Phone number is required for OVO payments")

        properties: Dict[str, Any] = {}
        if request.donor_phone:
            properties["mobile_number"] = request.donor_phone
        if self._return_url:
            properties["success_redirect_url"] = f"{self._return_url}/donation/success"
            properties["failure_redirect_url"] = f"{self._return_url}/donation/failed"

        body = {
            "reference_id": reference,
            "currency": "IDR",
            "amount": request.amount,
            "checkout_method": "ONE_TIME_PAYMENT",
            "channel_code": f"ID_{channel}",
            "channel_properties": properties,
        }
        logger.info("xendit e-wallet: reference=%s channel=%s amount=%d", reference, channel, request.amount)
        resp = await self._post("/ewallets/charges", body)
        js = read_json(resp)
        if resp.is_success and js.get("id"):
            actions = js.get("actions") or {}
            url = (
                actions.get("mobile_deeplink_checkout_url")
                or actions.get("desktop_web_checkout_url")
                or actions.get("mobile_web_checkout_url")
            )
            return PaymentResponse.ok(reference, payment_url=url, expired_at=expired_at)
        return self._failure(js, resp, "E-wallet creation failed")

    async def _create_qris(self, request: PaymentRequest, reference: str, expired_at: datetime) -> PaymentResponse:
        body = {
            "reference_id": reference,
            "type": "DYNAMIC",
            "currency": "IDR",
            "amount": request.amount,
            "expires_at": expired_at.isoformat(),
        }
        logger.info("xendit QRIS: reference=%s amount=%d", reference, request.amount)
        resp = await self._post("/qr_codes", body, {"api-version": QR_API_VERSION})
        js = read_json(resp)
        if resp.is_success and js.get("id") and js.get("qr_string"):
            return PaymentResponse.ok(reference, qr_code=js["qr_string"], expired_at=expired_at)
        return self._failure(js, resp, "QRIS creation failed")

    @staticmethod
    def _failure(js: Dict[str, Any], resp: httpx.Response, default: str) -> PaymentResponse:
        message = js.get("message") or default
        errors = js.get("errors")
        if isinstance(errors, list) and errors:
            details = "; ".join(
                f"{'.'.join(str(p) for p in e.get('path', []))}: {e.get('message')}" if isinstance(e, dict) else str(e)
                for e in errors
            )
            message = f"{message} ({details})"
        logger.warning("xendit rejected request: http=%s error_code=%s message=%s", resp.status_code, js.get("error_code"), message)
        return PaymentResponse.fail(message)

    def verify_webhook(self, payload: WebhookPayload, signature: Optional[str] = None) -> bool:
        if not signature or not self._callback_token:
            logger.warning("xendit webhook without callback token")
            return False
        return secure_equals(self._callback_token, signature)

    @staticmethod
    def _unwrap(payload: WebhookPayload) -> Dict[str, Any]:
        # e-wallet and QR callbacks nest the object under "data"
        data = payload.get("data")
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                data = None
        return data if isinstance(data, dict) else payload

    def parse_webhook(self, payload: WebhookPayload) -> NormalizedWebhookResult:
        body = self._unwrap(payload)
        raw_status = str(body.get("status") or "").upper()
        external_id = body.get("external_id") or body.get("reference_id") or body.get("id") or ""

        if raw_status in _SUCCESS:
            status = WebhookStatus.SUCCESS
        elif raw_status in _EXPIRED:
            status = WebhookStatus.EXPIRED
        else:
            status = WebhookStatus.FAILED

        paid_at = None
        if status is WebhookStatus.SUCCESS:
            paid_at = parse_provider_time(body.get("paid_at")) or utcnow()

        return NormalizedWebhookResult(external_id=str(external_id), status=status, paid_at=paid_at)
