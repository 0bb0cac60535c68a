from __future__ import annotations


class MailPilotError(Exception):
    """Base class for everything the client and services raise."""


class TransportError(MailPilotError):
    """Network, timeout, connection or redirect-limit failure."""


class ProtocolError(MailPilotError):
    """The backend answered, but not in a usable shape."""


class HTTPStatusError(ProtocolError):
    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP status {status_code}, body: {body}")


class BackendError(MailPilotError):
    """A well-formed response whose ``error`` field is set. Never retried."""

    def __init__(self, message: str, action: str | None = None):
        self.message = message
        self.action = action
        super().__init__(message)


class ConfigurationError(MailPilotError):
    pass


class RetryLimitExceeded(MailPilotError):
    def __init__(self, last_error: Exception | None, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"retry limit exceeded after {attempts} attempts: {last_error}")
