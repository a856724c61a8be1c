"""JSON-контракт функций /functions/v1/* (camelCase-поля как у клиента)."""
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

ACTION_CREATE_INVOICE = "create-invoice"
ACTION_CHECK_PAYMENT = "check-payment"


class CryptobotPaymentIn(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: str
    amount: Decimal | None = None
    invoice_id: str | int | None = Field(None, alias="invoiceId")


class InvoiceCreatedOut(BaseModel):
    success: bool = True
    invoice_url: str
    invoice_id: str


class PaymentStatusOut(BaseModel):
    success: bool = True
    status: str


class SpendTokensIn(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    post_id: str | None = Field(None, alias="postId")
    media_id: str | None = Field(None, alias="mediaId")


class SpendTokensOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    new_balance: float = Field(..., serialization_alias="newBalance")
    message: str | None = None
