from loguru import logger

from relay import translator
from relay.auth import AuthGuard
from relay.config import ConfigRegistry, Settings
from relay.errors import UnknownBank
from relay.forwarder import OutboundForwarder
from relay.transformer import to_outbound_payload
from schema import TransferRequest, TransferResponse


class TransferRelay:
    """Authenticate, transform, forward and translate a single transfer."""

    def __init__(self, registry: ConfigRegistry, guard: AuthGuard, forwarder: OutboundForwarder):
        self.registry = registry
        self.guard = guard
        self.forwarder = forwarder

    @classmethod
    def from_settings(cls, settings: Settings, registry: ConfigRegistry) -> "TransferRelay":
        forwarder = OutboundForwarder(
            registry,
            token_header=settings.TOKEN_HEADER,
            timeout=settings.OUTBOUND_TIMEOUT,
        )
        return cls(registry, AuthGuard(registry), forwarder)

    def process(self, presented_token: str | None, transfer: TransferRequest) -> TransferResponse:
        self.guard.authenticate(presented_token, transfer.sender_bank_id)

        if not self.registry.is_registered(transfer.receiver_bank_id):
            logger.info(f"Transfer from {transfer.sender_bank_id!r} names unregistered receiver {transfer.receiver_bank_id!r}")
            raise UnknownBank()

        payload = to_outbound_payload(transfer)
        raw_body = self.forwarder.forward(transfer.receiver_bank_id, payload)
        answer = translator.translate(raw_body)

        logger.info(
            f"Receiving bank {transfer.receiver_bank_id!r} answered status={answer.status} "
            f"for transfer {transfer.transfer_id or '-'} from {transfer.sender_bank_id!r}"
        )
        return translator.to_response(answer)
