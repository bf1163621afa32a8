# Error taxonomy for the relay. Each error knows the HTTP status and message
# the caller receives; the app turns them into JSON responses in one place.


class ConfigError(Exception):
    """Raised at startup when the bank registry cannot be built."""


class RelayError(Exception):
    status_code: int = 500
    message: str = "Transfer failed."
    # Failures against the receiving bank also report "status": false.
    include_status: bool = False

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_content(self) -> dict:
        content = {"message": self.message}
        if self.include_status:
            content["status"] = False
        return content


class MissingToken(RelayError):
    status_code = 400
    message = "No bank token provided."


class Unauthorized(RelayError):
    status_code = 401
    message = "Not authorized. Provide valid bank token."


class MalformedRequest(RelayError):
    status_code = 400
    message = "Malformed transfer request."


class UnknownBank(RelayError):
    status_code = 400
    message = "Receiving bank is not registered."


class DispatchFailed(RelayError):
    status_code = 500
    message = "Request to receiving bank failed."
    include_status = True


class ReadFailed(RelayError):
    status_code = 500
    message = "Reading request to receiving bank failed."
    include_status = True


class ParseError(RelayError):
    status_code = 500
    message = "Parsing request to receiving bank failed."
    include_status = True


class Rejected(RelayError):
    """The receiving bank answered with status false. Not a system fault."""

    status_code = 400
    include_status = True


class RateLimited(RelayError):
    status_code = 429
    message = "Rate limit exceeded."
