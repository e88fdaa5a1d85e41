import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from paygate.schemas.payment import PaymentRequest


class FakeProvider:
    """Stands in for a provider API: records requests, answers with a canned response."""

    def __init__(
        self,
        status_code: int = 200,
        body: Optional[Dict[str, Any]] = None,
        text: Optional[str] = None,
        exc: Optional[Exception] = None,
    ):
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.text = text
        self.exc = exc
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.last.content)


@pytest.fixture
def fake_provider():
    def _make(**kwargs) -> FakeProvider:
        return FakeProvider(**kwargs)

    return _make


@pytest.fixture
def make_request():
    def _make(method_code: str = "bca_va", **overrides) -> PaymentRequest:
        fields = {
            "donation_id": "don1",
            "amount": 50000,
            "donor_name": "Budi Santoso",
            "donor_email": "budi@example.com",
            "donor_phone": "081234567890",
            "method_code": method_code,
        }
        fields.update(overrides)
        return PaymentRequest(**fields)

    return _make
