import sys
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError
from pydantic_settings import SettingsError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from relay.config import ConfigRegistry, Settings, get_settings
from relay.errors import ConfigError, MalformedRequest, RateLimited, RelayError
from relay.logging_config import setup_logging
from relay.pipeline import TransferRelay
from schema import ErrorResponse, TransferRequest, TransferResponse


def create_app(settings: Settings | None = None, relay: TransferRelay | None = None) -> FastAPI:
    """
    Build the relay application.

    :param settings: Loaded settings, read from the environment when omitted
    :param relay: A prebuilt pipeline, built from the settings when omitted

    :raises ConfigError: If the bank registry cannot be built
    """
    if settings is None:
        settings = get_settings()
    setup_logging(settings.VERBOSE)
    if relay is None:
        relay = TransferRelay.from_settings(settings, ConfigRegistry.from_settings(settings))

    app = FastAPI(
        title="Bank Transfer Relay",
        description="Relays authenticated transfers between registered banks",
        version="1.0.0"
    )
    app.state.settings = settings
    app.state.relay = relay

    # Rate limiter setup
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.RATE_LIMIT],
        enabled=settings.RATE_LIMIT_ENABLED,
    )
    app.add_middleware(SlowAPIMiddleware)

    # Plain def: SlowAPIMiddleware calls this handler synchronously.
    @app.exception_handler(RateLimitExceeded)
    def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        error = RateLimited(f"Rate limit exceeded: {exc.detail}")
        return JSONResponse(status_code=error.status_code, content=error.to_content())

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(RequestValidationError)
    async def malformed_request_handler(request: Request, exc: RequestValidationError):
        logger.debug(f"Malformed transfer request: {exc.errors()}")
        error = MalformedRequest()
        return JSONResponse(status_code=error.status_code, content=error.to_content())

    # Middleware for request logging
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Request {request_id}: {request.method} {request.url.path} from {client_host}")

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            logger.info(
                f"Response {request_id}: Status {response.status_code}, "
                f"Completed in {process_time:.3f}s"
            )

            # Add request ID to response headers for tracing
            response.headers["X-Request-ID"] = request_id

            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"Error {request_id}: {str(e)}, "
                f"Occurred after {process_time:.3f}s"
            )
            raise

    # Plain def: the outbound call blocks, so FastAPI runs this in its threadpool.
    @app.post(
        "/transfer",
        response_model=TransferResponse,
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            500: {"model": TransferResponse},
        },
    )
    def transfer_request(transfer: TransferRequest, request: Request):
        """Authenticate a transfer and relay it to the receiving bank"""
        token = request.headers.get(settings.TOKEN_HEADER)
        return request.app.state.relay.process(token, transfer)

    return app


if __name__ == "__main__":
    try:
        settings = get_settings()
        setup_logging(settings.VERBOSE)
        registry = ConfigRegistry.from_settings(settings)
    except (ValidationError, SettingsError, ConfigError) as e:
        logger.error(f"Failed to load configuration: {str(e)}")
        sys.exit(1)

    # Launch the FastAPI app
    import uvicorn
    app = create_app(settings, TransferRelay.from_settings(settings, registry))
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
