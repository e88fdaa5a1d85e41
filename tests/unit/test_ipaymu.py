import json
from datetime import datetime, timezone

import httpx
import pytest

from paygate.providers.ipaymu.adapter import PRODUCTION_URL, SANDBOX_URL, IpaymuAdapter, parse_method_code
from paygate.providers.ipaymu.signature import (
    compact_json,
    notification_signature,
    request_signature,
    string_to_sign,
)
from paygate.schemas.payment import WebhookStatus
from paygate.utils.dates import WIB

VA = "0000001234567890"
API_KEY = "SANDBOX-API-KEY"

GOLDEN_BODY = {"account": VA, "amount": 50000, "referenceId": "DNT-don1-1700000000000"}
GOLDEN_BODY_JSON = '{"account":"0000001234567890","amount":50000,"referenceId":"DNT-don1-1700000000000"}'
GOLDEN_BODY_HASH = "9b039998cb6f5f3102ee36f3d33845796cb91b6150079ba16522eab3db000166"
GOLDEN_SIGNATURE = "1cb5de69b50859ab647f0bd5e969d4e076ebc1121784fa38cd9e58292b8d1b9d"

NOTIFICATION = {"referenceId": "DNT-don1-1700000000000", "status": "berhasil", "amount": "50000"}
GOLDEN_NOTIFICATION_SIGNATURE = "t8gw6PsumyHd5JU8JjQ9YAFPNJX20/VaBzyUXjsNxE4="


def _adapter(provider=None, **kwargs):
    kwargs.setdefault("is_production", False)
    return IpaymuAdapter(VA, API_KEY, transport=provider.transport if provider else None, **kwargs)


def _success_body(**data):
    payload = {
        "SessionId": "a1b2c3",
        "TransactionId": 123456,
        "ReferenceId": None,
        "Via": "VA",
        "Channel": "BCA",
        "PaymentNo": "7007014001234567",
        "PaymentName": "Budi Santoso",
        "Total": 54000,
        "Fee": 4000,
        "Expired": "2024-03-02 10:00:00",
    }
    payload.update(data)
    return {"Status": 200, "Success": True, "Message": "Success", "Data": payload}


class TestSignature:

    @pytest.mark.unit
    def test_compact_json(self):
        assert compact_json(GOLDEN_BODY) == GOLDEN_BODY_JSON

    @pytest.mark.unit
    def test_compact_json_keeps_unicode(self):
        assert compact_json({"name": "Siti Nurhaliza ✓"}) == '{"name":"Siti Nurhaliza ✓"}'

    @pytest.mark.unit
    def test_string_to_sign_layout(self):
        assert string_to_sign("post", VA, GOLDEN_BODY_JSON, API_KEY) == f"POST:{VA}:{GOLDEN_BODY_HASH}:{API_KEY}"

    @pytest.mark.unit
    def test_golden_request_signature(self):
        assert request_signature("POST", VA, GOLDEN_BODY_JSON, API_KEY) == GOLDEN_SIGNATURE

    @pytest.mark.unit
    def test_signature_depends_on_every_byte(self):
        spaced = json.dumps(GOLDEN_BODY)
        assert request_signature("POST", VA, spaced, API_KEY) != GOLDEN_SIGNATURE

    @pytest.mark.unit
    def test_golden_notification_signature(self):
        assert notification_signature(NOTIFICATION, API_KEY) == GOLDEN_NOTIFICATION_SIGNATURE


class TestMethodCodes:

    @pytest.mark.unit
    @pytest.mark.parametrize("code,expected", [
        ("va:bca", ("va", "bca")),
        ("qris:qris", ("qris", "qris")),
        ("cstore:alfamart", ("cstore", "alfamart")),
        ("bca_va", ("va", "bca")),
        ("BNI_VA", ("va", "bni")),
        ("qris", ("qris", "qris")),
        ("gopay", ("cstore", "gopay")),
        ("indomaret", ("cstore", "indomaret")),
        ("credit_card", ("cc", "cc")),
        ("cc", ("cc", "cc")),
        ("online", ("online", "online")),
        ("cod", ("cod", "cod")),
    ])
    def test_known_codes(self, code, expected):
        assert parse_method_code(code) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("code", ["paypal", "bitcoin:btc", "va:", "_va", "crypto"])
    def test_unknown_codes(self, code):
        assert parse_method_code(code) is None


class TestCreatePayment:

    @pytest.mark.unit
    def test_environment_urls(self):
        assert _adapter(is_production=True).base_url == PRODUCTION_URL
        assert _adapter(is_production=False).base_url == SANDBOX_URL

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_signed_request(self, fake_provider, make_request):
        provider = fake_provider(body=_success_body())
        adapter = _adapter(provider, notify_url="https://api.example/webhooks/ipaymu")
        await adapter.create_payment(make_request("va:bca", expiry_minutes=90))

        sent = provider.last
        raw = sent.content.decode("utf-8")
        assert str(sent.url) == f"{SANDBOX_URL}/payment/direct"
        assert sent.headers["va"] == VA
        assert sent.headers["signature"] == request_signature("POST", VA, raw, API_KEY)
        assert raw == compact_json(json.loads(raw))

        body = json.loads(raw)
        assert body["paymentMethod"] == "va"
        assert body["paymentChannel"] == "bca"
        assert body["amount"] == 50000
        assert body["price"] == [50000]
        assert body["expired"] == 2
        assert body["notifyUrl"] == "https://api.example/webhooks/ipaymu"
        assert body["referenceId"].startswith("DNT-don1-")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_virtual_account_response(self, fake_provider, make_request):
        provider = fake_provider(body=_success_body())
        resp = await _adapter(provider).create_payment(make_request("bca_va"))

        assert resp.success is True
        assert resp.external_id == provider.last_json()["referenceId"]
        assert resp.payment_code == "7007014001234567"
        assert resp.qr_code is None
        assert resp.expired_at == datetime(2024, 3, 2, 10, 0, tzinfo=WIB)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_qris_response(self, fake_provider, make_request):
        provider = fake_provider(body=_success_body(
            Via="QRIS", Channel="MPM", PaymentNo="00020101021226670016COM.NOBUBANK",
            QrString="00020101021226670016COM.NOBUBANK", QrImage="https://sandbox.ipaymu.com/qr/123",
        ))
        resp = await _adapter(provider).create_payment(make_request("qris"))

        assert resp.qr_code == "00020101021226670016COM.NOBUBANK"
        assert resp.payment_code is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_rejection(self, fake_provider, make_request):
        provider = fake_provider(status_code=401, body={"Status": 401, "Success": False, "Message": "unauthorized signature", "Data": []})
        resp = await _adapter(provider).create_payment(make_request())
        assert resp.success is False
        assert resp.error == "unauthorized signature"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsupported_method(self, fake_provider, make_request):
        provider = fake_provider()
        resp = await _adapter(provider).create_payment(make_request("paypal"))
        assert resp.error == "Unsupported payment method: paypal"
        assert provider.requests == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self, fake_provider, make_request):
        provider = fake_provider(exc=httpx.ConnectTimeout("timed out"))
        resp = await _adapter(provider).create_payment(make_request())
        assert resp.error == "Payment gateway timed out"


class TestVerifyWebhook:

    @pytest.mark.unit
    def test_valid_signature(self):
        assert _adapter().verify_webhook(NOTIFICATION, GOLDEN_NOTIFICATION_SIGNATURE) is True

    @pytest.mark.unit
    def test_altered_signature(self):
        # "t" -> "u" flips the lowest bit of the first sextet
        flipped = "u" + GOLDEN_NOTIFICATION_SIGNATURE[1:]
        assert _adapter().verify_webhook(NOTIFICATION, flipped) is False

    @pytest.mark.unit
    def test_tampered_payload(self):
        tampered = dict(NOTIFICATION, amount="1")
        assert _adapter().verify_webhook(tampered, GOLDEN_NOTIFICATION_SIGNATURE) is False

    @pytest.mark.unit
    def test_missing_signature(self):
        assert _adapter().verify_webhook(NOTIFICATION) is False


class TestParseWebhook:

    @pytest.mark.unit
    @pytest.mark.parametrize("status,expected", [
        ("berhasil", WebhookStatus.SUCCESS),
        ("success", WebhookStatus.SUCCESS),
        ("Paid", WebhookStatus.SUCCESS),
        ("expired", WebhookStatus.EXPIRED),
        ("kadaluarsa", WebhookStatus.EXPIRED),
        ("pending", WebhookStatus.FAILED),
        ("gagal", WebhookStatus.FAILED),
        (None, WebhookStatus.FAILED),
    ])
    def test_status_table(self, status, expected):
        assert _adapter().parse_webhook({"referenceId": "DNT-1", "status": status}).status is expected

    @pytest.mark.unit
    def test_reference_id_spellings(self):
        assert _adapter().parse_webhook({"reference_id": "DNT-2", "status": "berhasil"}).external_id == "DNT-2"
        assert _adapter().parse_webhook({"status": "berhasil"}).external_id == ""

    @pytest.mark.unit
    def test_expired_result_is_idempotent(self):
        payload = {"referenceId": "DNT-1", "status": "expired"}
        adapter = _adapter()
        assert adapter.parse_webhook(payload).model_dump_json() == adapter.parse_webhook(payload).model_dump_json()

    @pytest.mark.unit
    def test_paid_at_from_notification(self):
        payload = dict(NOTIFICATION, paid_at="2024-03-01 10:15:00")
        assert _adapter().parse_webhook(payload).paid_at == datetime(2024, 3, 1, 10, 15, tzinfo=WIB)

    @pytest.mark.unit
    def test_success_result_is_idempotent(self):
        payload = dict(NOTIFICATION, paid_at="2024-03-01 10:15:00")
        adapter = _adapter()
        first = adapter.parse_webhook(payload)
        assert first.status is WebhookStatus.SUCCESS
        assert adapter.parse_webhook(payload).model_dump_json() == first.model_dump_json()

    @pytest.mark.unit
    def test_paid_at_defaults_to_now(self):
        result = _adapter().parse_webhook(NOTIFICATION)
        assert abs((result.paid_at - datetime.now(timezone.utc)).total_seconds()) < 5
