from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Only the fields the adapter reads; iPaymu sends many more.


class DirectPaymentData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    session_id: Optional[str] = Field(default=None, alias="SessionId")
    transaction_id: Optional[str] = Field(default=None, alias="TransactionId")
    reference_id: Optional[str] = Field(default=None, alias="ReferenceId")
    via: Optional[str] = Field(default=None, alias="Via")
    channel: Optional[str] = Field(default=None, alias="Channel")
    payment_no: Optional[str] = Field(default=None, alias="PaymentNo")
    payment_name: Optional[str] = Field(default=None, alias="PaymentName")
    payment_url: Optional[str] = Field(default=None, alias="PaymentUrl")
    qr_string: Optional[str] = Field(default=None, alias="QrString")
    qr_image: Optional[str] = Field(default=None, alias="QrImage")
    expired: Optional[str] = Field(default=None, alias="Expired")
    fee: Optional[float] = Field(default=None, alias="Fee")
    total: Optional[float] = Field(default=None, alias="Total")


class DirectPaymentResponse(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status: Optional[int] = Field(default=None, alias="Status")
    success: bool = Field(default=False, alias="Success")
    message: Optional[str] = Field(default=None, alias="Message")
    data: Optional[DirectPaymentData] = Field(default=None, alias="Data")

    @field_validator("data", mode="before")
    @classmethod
    def _empty_data(cls, v: Any) -> Any:
        # error responses carry "Data": [] or null
        return v if isinstance(v, dict) else None
