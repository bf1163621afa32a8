import time

import requests
from loguru import logger

from relay.config import ConfigRegistry
from relay.errors import DispatchFailed, ReadFailed

DEFAULT_TIMEOUT = 10.0

# One byte per read: each read is then at most one socket receive, so the
# deadline is checked while a slow body trickles in.
READ_CHUNK_SIZE = 1


def limit_read_timeout(response: requests.Response, remaining: float) -> None:
    """Shrink the socket timeout of a streamed response to the time left."""
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is not None:
        sock.settimeout(remaining)


class OutboundForwarder:
    """
    Delivers the canonical payload to the receiving bank.

    One attempt per transfer. The timeout caps the whole exchange, from
    connecting to reading the last byte of the answer. A timeout is reported
    like any other transport failure and nothing is retried or queued.
    """

    def __init__(
        self,
        registry: ConfigRegistry,
        token_header: str = "Token",
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.registry = registry
        self.token_header = token_header
        self.timeout = timeout
        self.session = session or requests.Session()

    def build_request(self, receiver_bank_id: str, payload: dict) -> requests.PreparedRequest:
        """
        Build the POST to the receiving bank, carrying its registered token.

        :raises DispatchFailed: If the request cannot be constructed, e.g. a malformed endpoint URL
        """
        endpoint = self.registry.endpoint_for(receiver_bank_id)
        request = requests.Request(
            "POST",
            endpoint,
            json=payload,
            headers={self.token_header: self.registry.token_for(receiver_bank_id) or ""},
        )
        try:
            return self.session.prepare_request(request)
        except (requests.RequestException, ValueError) as exc:
            logger.error(f"Could not build request to {receiver_bank_id!r} at {endpoint!r}: {exc}")
            raise DispatchFailed("Making request to receiving bank failed.") from exc

    def forward(self, receiver_bank_id: str, payload: dict) -> bytes:
        """
        Send the payload to the receiving bank and return the raw response body.

        :param receiver_bank_id: The registry id of the receiving bank
        :param payload: The canonical outbound payload

        :return: The raw response body

        :raises DispatchFailed: If the request cannot be built or sent, including timeouts
        :raises ReadFailed: If the body could not be read completely before the deadline
        """
        prepared = self.build_request(receiver_bank_id, payload)

        logger.debug(f"Forwarding transfer to {receiver_bank_id!r} at {prepared.url}")
        deadline = time.monotonic() + self.timeout
        try:
            response = self.session.send(prepared, timeout=self.timeout, stream=True)
        except requests.Timeout as exc:
            logger.warning(f"Request to {receiver_bank_id!r} timed out after {self.timeout}s")
            raise DispatchFailed() from exc
        except requests.RequestException as exc:
            logger.warning(f"Request to {receiver_bank_id!r} failed: {exc}")
            raise DispatchFailed() from exc

        try:
            body = self.read_body(response, deadline)
        except ReadFailed:
            logger.warning(f"Reading response from {receiver_bank_id!r} did not finish within {self.timeout}s")
            raise
        except (requests.RequestException, OSError) as exc:
            logger.warning(f"Reading response from {receiver_bank_id!r} failed: {exc}")
            raise ReadFailed() from exc
        finally:
            response.close()

        logger.debug(f"Receiving bank {receiver_bank_id!r} answered HTTP {response.status_code} ({len(body)} bytes)")
        return body

    def read_body(self, response: requests.Response, deadline: float) -> bytes:
        """
        Read the streamed body, giving up once the deadline has passed.

        :raises ReadFailed: If the deadline passes before the body is complete
        """
        body = bytearray()
        chunks = response.iter_content(READ_CHUNK_SIZE)
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadFailed()
            limit_read_timeout(response, remaining)
            chunk = next(chunks, None)
            if chunk is None:
                return bytes(body)
            body += chunk
