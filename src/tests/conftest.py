import sys

import pytest
from loguru import logger

from app import create_app
from relay.auth import AuthGuard
from relay.config import ConfigRegistry, Settings
from relay.forwarder import OutboundForwarder
from relay.pipeline import TransferRelay
from stubs import BANK_ENDPOINTS, BANK_TOKENS, StubSession


def make_settings(**overrides) -> Settings:
    values = {
        "BANK_ENDPOINTS": BANK_ENDPOINTS,
        "BANK_TOKENS": BANK_TOKENS,
        "RATE_LIMIT_ENABLED": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def registry():
    return ConfigRegistry(BANK_ENDPOINTS, BANK_TOKENS)


@pytest.fixture
def session():
    return StubSession()


@pytest.fixture
def forwarder(registry, session):
    return OutboundForwarder(registry, session=session)


@pytest.fixture
def make_app(registry):
    def _make_app(session: StubSession, **overrides):
        settings = make_settings(**overrides)
        forwarder = OutboundForwarder(registry, token_header=settings.TOKEN_HEADER, session=session)
        return create_app(settings, TransferRelay(registry, AuthGuard(registry), forwarder))

    return _make_app


@pytest.fixture
def anyio_backend():
    return "asyncio"
