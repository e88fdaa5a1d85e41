from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Whatever the provider POSTs; only the owning adapter knows its shape.
WebhookPayload = Dict[str, Any]


class WebhookStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    EXPIRED = "expired"


class GatewayCredentials(BaseModel):
    """Flat bag of secrets handed to the adapter factory.

    Each adapter picks the fields it needs by name; see
    ``paygate.providers.registry`` for the mapping.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    server_key: Optional[str] = None
    client_key: Optional[str] = None
    secret_key: Optional[str] = None
    public_key: Optional[str] = None
    callback_token: Optional[str] = None
    validation_token: Optional[str] = None
    merchant_id: Optional[str] = None


class PaymentRequest(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    donation_id: str = Field(min_length=1)
    amount: int = Field(gt=0, description="Smallest currency unit")
    donor_name: str
    donor_email: Optional[str] = None
    donor_phone: Optional[str] = None
    method_code: str = Field(min_length=1, description="e.g. bca_va, ovo, qris, va:bca")
    expiry_minutes: int = Field(default=1440, gt=0)


class PaymentResponse(BaseModel):
    """Either a created payment or a failure message, never both."""

    model_config = ConfigDict(frozen=True)

    success: bool
    external_id: Optional[str] = None
    payment_code: Optional[str] = None
    payment_url: Optional[str] = None
    qr_code: Optional[str] = None
    expired_at: Optional[datetime] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _check_branch(self) -> "PaymentResponse":
        if self.success:
            if not self.external_id:
                raise ValueError("successful response requires external_id")
            if self.error:
                raise ValueError("successful response cannot carry an error")
        else:
            if not self.error:
                raise ValueError("failed response requires an error message")
            if any((self.external_id, self.payment_code, self.payment_url, self.qr_code, self.expired_at)):
                raise ValueError("failed response cannot carry payment fields")
        return self

    @classmethod
    def ok(cls, external_id: str, **fields: Any) -> "PaymentResponse":
        # providers answer "" for absent codes/urls
        cleaned = {k: (v or None) for k, v in fields.items()}
        return cls(success=True, external_id=external_id, **cleaned)

    @classmethod
    def fail(cls, error: str) -> "PaymentResponse":
        return cls(success=False, error=error or "Payment creation failed")


class NormalizedWebhookResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    external_id: str = ""
    status: WebhookStatus
    paid_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _paid_at_only_on_success(self) -> "NormalizedWebhookResult":
        if self.paid_at is not None and self.status is not WebhookStatus.SUCCESS:
            raise ValueError("paid_at is only meaningful for successful payments")
        return self
