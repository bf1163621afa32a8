import json
import socket
import threading
import time

import pytest
import requests

from relay.config import ConfigRegistry
from relay.errors import DispatchFailed, ReadFailed
from relay.forwarder import OutboundForwarder
from stubs import StubSession, make_response

PAYLOAD = {
    "senderBankId": "alpha",
    "senderAccountNumber": "1001",
    "receiverAccountNumber": "2002",
    "amount": "10.000000",
    "message": "",
}


class BrokenBody:
    def read(self, *args, **kwargs):
        raise requests.exceptions.ChunkedEncodingError("connection dropped mid-body")

    def close(self):
        pass


def test_posts_payload_with_receiver_token(forwarder, session):
    body = forwarder.forward("beta", PAYLOAD)

    assert body == b'{"message": "ok", "status": true}'
    (request, kwargs), = session.sent
    assert request.method == "POST"
    assert request.url == "http://beta.test/transfer"
    assert request.headers["Token"] == "beta-token"
    assert json.loads(request.body) == PAYLOAD
    assert kwargs["timeout"] == 10.0


def test_uses_configured_header_and_timeout(registry, session):
    forwarder = OutboundForwarder(registry, token_header="X-Bank-Token", timeout=2.5, session=session)

    forwarder.forward("alpha", PAYLOAD)

    (request, kwargs), = session.sent
    assert request.headers["X-Bank-Token"] == "alpha-token"
    assert kwargs["timeout"] == 2.5


def test_returns_body_regardless_of_http_status(registry):
    session = StubSession(response=make_response(b'{"message": "nope", "status": false}', status_code=502))
    forwarder = OutboundForwarder(registry, session=session)

    assert forwarder.forward("beta", PAYLOAD) == b'{"message": "nope", "status": false}'


@pytest.mark.parametrize("error", [
    requests.ConnectionError("connection refused"),
    requests.ConnectTimeout("connect timed out"),
    requests.ReadTimeout("read timed out"),
])
def test_send_failures(registry, error):
    forwarder = OutboundForwarder(registry, session=StubSession(error=error))

    with pytest.raises(DispatchFailed) as excinfo:
        forwarder.forward("beta", PAYLOAD)

    assert excinfo.value.message == "Request to receiving bank failed."


@pytest.mark.parametrize("endpoint", ["", "not a url", "http://"])
def test_malformed_endpoint(endpoint):
    registry = ConfigRegistry({"beta": endpoint}, {"beta": "beta-token"})
    forwarder = OutboundForwarder(registry, session=StubSession())

    with pytest.raises(DispatchFailed) as excinfo:
        forwarder.forward("beta", PAYLOAD)

    assert excinfo.value.message == "Making request to receiving bank failed."


def test_unreadable_body(registry):
    response = requests.Response()
    response.status_code = 200
    response.raw = BrokenBody()
    forwarder = OutboundForwarder(registry, session=StubSession(response=response))

    with pytest.raises(ReadFailed) as excinfo:
        forwarder.forward("beta", PAYLOAD)

    assert excinfo.value.to_content() == {"message": "Reading request to receiving bank failed.", "status": False}


def test_unsupported_scheme_fails_to_send():
    registry = ConfigRegistry({"beta": "ftp://beta.test/transfer"}, {"beta": "beta-token"})
    forwarder = OutboundForwarder(registry, session=requests.Session())

    with pytest.raises(DispatchFailed):
        forwarder.forward("beta", PAYLOAD)


@pytest.fixture
def slow_bank():
    """
    A local receiving bank that answers too slowly.

    Call it with a drip interval to send headers and then one body byte per
    interval, or with None to accept the connection and never answer.
    """
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    listener.settimeout(5)
    stop = threading.Event()
    threads = []

    def serve(drip_interval):
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            conn.recv(65536)
            if drip_interval is None:
                stop.wait(5)
                return
            conn.sendall(b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\nContent-Length: 1000\r\n\r\n")
            while not stop.is_set():
                try:
                    conn.sendall(b" ")
                except OSError:
                    return
                stop.wait(drip_interval)

    def start(drip_interval):
        thread = threading.Thread(target=serve, args=(drip_interval,), daemon=True)
        thread.start()
        threads.append(thread)
        host, port = listener.getsockname()
        return f"http://{host}:{port}/transfer"

    yield start

    stop.set()
    for thread in threads:
        thread.join(timeout=5)
    listener.close()


def slow_forwarder(endpoint, timeout):
    session = requests.Session()
    session.trust_env = False
    registry = ConfigRegistry({"beta": endpoint}, {"beta": "beta-token"})
    return OutboundForwarder(registry, timeout=timeout, session=session)


def test_trickling_body_is_cut_off_at_the_deadline(slow_bank):
    forwarder = slow_forwarder(slow_bank(0.2), timeout=1.0)

    started = time.monotonic()
    with pytest.raises(ReadFailed):
        forwarder.forward("beta", PAYLOAD)

    assert time.monotonic() - started < 1.5


def test_silent_bank_times_out(slow_bank):
    forwarder = slow_forwarder(slow_bank(None), timeout=1.0)

    started = time.monotonic()
    with pytest.raises(DispatchFailed):
        forwarder.forward("beta", PAYLOAD)

    assert time.monotonic() - started < 1.5
