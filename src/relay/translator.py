from loguru import logger
from pydantic import ValidationError

from relay.errors import ParseError, Rejected
from schema import TransferAnswer, TransferResponse


def translate(raw_body: bytes) -> TransferAnswer:
    """
    Parse the receiving bank's answer.

    :param raw_body: The raw response body

    :raises ParseError: If the body is not JSON or lacks a string message and boolean status
    """
    try:
        return TransferAnswer.model_validate_json(raw_body)
    except ValidationError as exc:
        logger.warning(f"Unparseable answer from receiving bank: {exc.errors(include_url=False)}")
        raise ParseError() from exc


def to_response(answer: TransferAnswer) -> TransferResponse:
    """Surface the receiving bank's decision verbatim; status false becomes a rejection."""
    if not answer.status:
        raise Rejected(answer.message)
    return TransferResponse(message=answer.message, status=True)
