from .backend import BackendClient
from .errors import (
    BackendError,
    ConfigurationError,
    HTTPStatusError,
    MailPilotError,
    ProtocolError,
    RetryLimitExceeded,
    TransportError,
)
from .transport import RequestClient

__all__ = [
    "BackendClient",
    "BackendError",
    "ConfigurationError",
    "HTTPStatusError",
    "MailPilotError",
    "ProtocolError",
    "RetryLimitExceeded",
    "RequestClient",
    "TransportError",
]
