from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

# Simplified models of the Flip "Payment Without Form" bill response.


class ReceiverBankAccount(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    account_number: Optional[str] = None
    account_type: Optional[str] = None
    bank_code: Optional[str] = None
    account_holder: Optional[str] = None
    qr_code_data: Optional[str] = None


class BillPayment(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: Optional[str] = None
    status: Optional[str] = None
    receiver_bank_account: Optional[ReceiverBankAccount] = None


class BillResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    link_id: Optional[int] = None
    link_url: Optional[str] = None
    title: Optional[str] = None
    status: Optional[str] = None
    step: Optional[int] = None
    expired_date: Optional[str] = None
    bill_payment: Optional[BillPayment] = None
    # dict of field -> [messages] or list of {attribute, code, message}
    errors: Any = None
