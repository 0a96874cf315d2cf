from __future__ import annotations

"""
Error taxonomy shared by the gateway components.

Components raise these; `main.py` translates them to HTTP responses.
"""


class GatewayError(Exception):
    status_code = 500
    message = "Internal server error."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class BadRequest(GatewayError):
    status_code = 400
    message = "Bad request."


class NotFound(GatewayError):
    status_code = 404
    message = "Not found."


class LookupFailed(NotFound):
    message = "Could not determine location from IP address."


class Conflict(GatewayError):
    status_code = 409
    message = "Event is already in favorites."


class UpstreamError(GatewayError):
    status_code = 500
    message = "Upstream service request failed."


class ConfigurationError(RuntimeError):
    pass
