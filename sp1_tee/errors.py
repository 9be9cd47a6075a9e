"""Exceptions raised by the SP1 TEE client."""

from __future__ import annotations

from enum import Enum


class RequestState(str, Enum):
    """Lifecycle of a single request to the TEE server."""

    CREATED = "created"
    SENT = "sent"
    STREAMING = "streaming"
    SUCCESS = "success"
    ERROR = "error"
    DISCONNECTED = "disconnected"


class TEEError(Exception):
    """Base exception for SP1 TEE errors."""

    pass


class ConfigurationError(TEEError):
    """Raised when a required setting is missing or invalid."""

    pass


class MalformedPayloadError(TEEError):
    """Raised when a wire payload cannot be decoded."""

    pass


class SignatureRecoveryError(TEEError):
    """Raised when no public key can be recovered from a signature."""

    pass


class AddressMismatchError(TEEError):
    """Raised when a signature recovers to an untrusted address."""

    def __init__(self, recovered: str, expected: str):
        super().__init__(f"Signer mismatch: recovered {recovered}, expected {expected}")
        self.recovered = recovered
        self.expected = expected


class SignerNotInitializedError(TEEError):
    """Raised when verifying before a trusted signer address is known."""

    pass


class RemoteError(TEEError):
    """Raised when the TEE server reports a failed execution.

    The message is the server's, passed through untouched.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(TEEError):
    """Raised when the connection to the TEE server fails or drops.

    ``state`` is the request state the exchange had reached, if any.
    """

    def __init__(self, message: str, state: RequestState | None = None):
        super().__init__(message)
        self.state = state
