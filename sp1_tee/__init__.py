"""SP1 TEE - Client library for SP1 TEE integrity proofs.

An integrity proof is a signature, computed inside a trusted execution
environment, over the verifying key and public values of a program run.
It is an independent check layered on top of the zero-knowledge proof.
"""

from .api import (
    ErrorEvent,
    EventPayload,
    GetAddressResponse,
    Signature,
    SuccessEvent,
    TEEProof,
    TEERequest,
    TEEResponse,
    decode_event,
    encode_event,
)
from .client import AsyncTEEClient, TEEClient
from .errors import (
    AddressMismatchError,
    ConfigurationError,
    MalformedPayloadError,
    RemoteError,
    RequestState,
    SignatureRecoveryError,
    SignerNotInitializedError,
    TEEError,
    TransportError,
)
from .signer import SignerSnapshot, TrustedSigner
from .verify import (
    PREFIX_LENGTH,
    SELECTOR,
    RecoverableSignature,
    digest,
    encode_prefix,
    integrity_proof_bytes,
    is_valid_response,
    recover_signer,
    verify_response,
)

__all__ = [
    # Client classes
    "TEEClient",
    "AsyncTEEClient",
    "TrustedSigner",
    "SignerSnapshot",
    # Wire payloads
    "TEEProof",
    "TEERequest",
    "TEEResponse",
    "Signature",
    "GetAddressResponse",
    "SuccessEvent",
    "ErrorEvent",
    "EventPayload",
    "decode_event",
    "encode_event",
    # Exceptions
    "TEEError",
    "ConfigurationError",
    "MalformedPayloadError",
    "SignatureRecoveryError",
    "AddressMismatchError",
    "SignerNotInitializedError",
    "RemoteError",
    "TransportError",
    "RequestState",
    # Verification
    "SELECTOR",
    "PREFIX_LENGTH",
    "RecoverableSignature",
    "digest",
    "encode_prefix",
    "integrity_proof_bytes",
    "is_valid_response",
    "recover_signer",
    "verify_response",
]
__version__ = "0.1.0"
