import secrets

from loguru import logger

from relay.config import ConfigRegistry
from relay.errors import MissingToken, Unauthorized


class AuthGuard:
    def __init__(self, registry: ConfigRegistry):
        self.registry = registry

    def authenticate(self, presented_token: str | None, sender_bank_id: str) -> None:
        """
        Check the presented token against the sender bank's registered token.

        :param presented_token: The token header value, or None when absent
        :param sender_bank_id: The bank id the request claims to come from

        :raises MissingToken: If no token was presented
        :raises Unauthorized: If the token does not match, or the sender is unknown
        """
        if presented_token is None:
            raise MissingToken()

        expected = self.registry.token_for(sender_bank_id)
        # An unknown bank has no token; empty must never match empty.
        if not expected or not presented_token:
            logger.debug(f"Rejecting transfer from unregistered or tokenless sender {sender_bank_id!r}")
            raise Unauthorized()

        if not secrets.compare_digest(presented_token.encode("utf-8"), expected.encode("utf-8")):
            logger.debug(f"Token mismatch for sender {sender_bank_id!r}")
            raise Unauthorized()
