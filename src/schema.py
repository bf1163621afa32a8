# Models with validation
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, field_validator

MAX_AMOUNT_DIGITS = 38


# Inbound request from the sending bank
class TransferRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender_bank_id: str = Field("", alias="senderBankId")
    receiver_bank_id: str = Field("", alias="receiverBankId")
    sender_account_number: int = Field(..., alias="senderAccountNumber")
    # Account numbers and amounts may arrive as numeric strings.
    receiver_account_number: int = Field(..., alias="receiverAccountNumber")
    amount: Decimal = Field(..., allow_inf_nan=False)
    message: str = ""
    transfer_id: str | None = Field(None, alias="transferId")

    @field_validator("amount")
    @classmethod
    def bounded_amount(cls, amount: Decimal) -> Decimal:
        """Reject amounts whose fixed-point form would exceed MAX_AMOUNT_DIGITS digits."""
        _, digits, exponent = amount.as_tuple()
        if exponent >= 0:
            total_digits = len(digits) + exponent
        else:
            total_digits = max(len(digits), -exponent)
        if total_digits > MAX_AMOUNT_DIGITS:
            raise ValueError(f"amount must have at most {MAX_AMOUNT_DIGITS} digits")
        return amount


# Answer from the receiving bank
class TransferAnswer(BaseModel):
    message: StrictStr
    status: StrictBool


# API response models
class TransferResponse(BaseModel):
    message: str
    status: bool


class ErrorResponse(BaseModel):
    message: str
