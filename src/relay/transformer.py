from decimal import Decimal

from schema import TransferRequest

# Receiving banks parse amounts with exactly six fractional digits.
AMOUNT_FORMAT = ".6f"


def format_amount(amount: Decimal) -> str:
    """Fixed-point, never scientific notation."""
    return format(amount, AMOUNT_FORMAT)


def to_outbound_payload(transfer: TransferRequest) -> dict[str, str]:
    """
    Convert an inbound transfer into the canonical payload sent to the receiving bank.

    :param transfer: The parsed inbound transfer

    :return: The canonical payload, every value a string
    """
    payload = {
        "senderBankId": transfer.sender_bank_id,
        "senderAccountNumber": str(transfer.sender_account_number),
        "receiverAccountNumber": str(transfer.receiver_account_number),
        "amount": format_amount(transfer.amount),
        "message": transfer.message,
    }
    if transfer.transfer_id is not None:
        payload["transferId"] = transfer.transfer_id
    return payload
