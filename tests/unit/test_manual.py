from datetime import datetime, timedelta, timezone

import pytest

from paygate.providers.manual.adapter import ManualAdapter
from paygate.schemas.payment import WebhookStatus


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_payment_is_local(make_request):
    resp = await ManualAdapter().create_payment(make_request("cash"))

    assert resp.success is True
    assert resp.external_id.startswith("MANUAL-don1-")
    assert resp.payment_code is None
    assert resp.payment_url is None
    expected = datetime.now(timezone.utc) + timedelta(hours=48)
    assert abs((resp.expired_at - expected).total_seconds()) < 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_references_are_distinct(make_request):
    adapter = ManualAdapter()
    refs = {(await adapter.create_payment(make_request())).external_id for _ in range(20)}
    assert len(refs) == 20


@pytest.mark.unit
def test_verify_accepts_anything():
    assert ManualAdapter().verify_webhook({}) is True
    assert ManualAdapter().verify_webhook({"status": "success"}, "whatever") is True


@pytest.mark.unit
@pytest.mark.parametrize("status,expected", [
    ("success", WebhookStatus.SUCCESS),
    ("SUCCESS", WebhookStatus.SUCCESS),
    ("expired", WebhookStatus.EXPIRED),
    ("failed", WebhookStatus.FAILED),
    ("pending", WebhookStatus.FAILED),
    (None, WebhookStatus.FAILED),
])
def test_status_used_verbatim(status, expected):
    assert ManualAdapter().parse_webhook({"external_id": "MANUAL-1", "status": status}).status is expected


@pytest.mark.unit
def test_paid_at_from_payload():
    result = ManualAdapter().parse_webhook({"external_id": "MANUAL-1", "status": "success", "paid_at": "2024-03-01T03:00:00Z"})
    assert result.external_id == "MANUAL-1"
    assert result.paid_at == datetime(2024, 3, 1, 3, 0, tzinfo=timezone.utc)
