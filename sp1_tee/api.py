"""Wire payloads exchanged with the SP1 TEE server.

Byte fields travel as 0x-prefixed hex strings in JSON. Addresses are
rendered with an EIP-55 checksum but accepted in any case.

The terminal server-sent event of an ``/execute`` stream is externally
tagged, exactly one of::

    {"Success": {"vkey": "0x..", "public_values": "0x..", ...}}
    {"Error": "execution failed"}
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Annotated, Union

from eth_utils import to_checksum_address
from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    TypeAdapter,
    ValidationError,
)

from .errors import MalformedPayloadError
from .verify import RecoverableSignature, digest, encode_prefix

REQUEST_ID_LENGTH = 32
ADDRESS_LENGTH = 20


class TEEProof(str, Enum):
    """Which integrity proof, if any, to request alongside a proof."""

    NITRO_INTEGRITY = "nitro_integrity"
    NONE = "none"

    @property
    def enabled(self) -> bool:
        return self is not TEEProof.NONE


def _decode_hex(value: object) -> object:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value[:2] in ("0x", "0X") else value
        if any(c.isspace() for c in text):
            raise ValueError("invalid hex string: contains whitespace")
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            raise ValueError(f"invalid hex string: {e}") from e
    return value


def _exact_length(length: int):
    def check(value: bytes) -> bytes:
        if len(value) != length:
            raise ValueError(f"expected {length} bytes, got {len(value)}")
        return value

    return check


def _to_hex(value: bytes) -> str:
    return "0x" + value.hex()


HexBytes = Annotated[
    bytes,
    BeforeValidator(_decode_hex),
    PlainSerializer(_to_hex, return_type=str, when_used="json"),
]
Bytes32 = Annotated[
    bytes,
    BeforeValidator(_decode_hex),
    AfterValidator(_exact_length(32)),
    PlainSerializer(_to_hex, return_type=str, when_used="json"),
]
Address = Annotated[
    bytes,
    BeforeValidator(_decode_hex),
    AfterValidator(_exact_length(ADDRESS_LENGTH)),
    PlainSerializer(to_checksum_address, return_type=str, when_used="json"),
]


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def decode(cls, data: str | bytes):
        """Parse a JSON payload, raising MalformedPayloadError on any failure."""
        try:
            return cls.model_validate_json(data, by_name=False)
        except ValidationError as e:
            raise MalformedPayloadError(f"Invalid {cls.__name__} payload: {e}") from e

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True)


class TEERequest(_Payload):
    """Request payload for the TEE server's ``/execute`` endpoint.

    ``id`` correlates the streamed response with this request and must be
    unique across the caller's in-flight requests. Nothing here enforces
    that; use ``TEERequest.create`` to draw a random one.
    """

    id: Bytes32 = Field(..., description="Network request id")
    program: HexBytes = Field(..., description="Program to execute")
    stdin: HexBytes = Field(..., description="Serialized stdin for the program")

    @classmethod
    def create(cls, program: bytes, stdin: bytes) -> TEERequest:
        return cls(id=os.urandom(REQUEST_ID_LENGTH), program=program, stdin=stdin)


class Signature(_Payload):
    """The (r, s) scalars of a secp256k1 ECDSA signature, big-endian."""

    r: Bytes32
    s: Bytes32


class TEEResponse(_Payload):
    """Integrity proof returned by the TEE server.

    The signature covers keccak256(vkey || public_values).
    """

    vkey: Bytes32 = Field(..., description="Verifying key of the executed program")
    public_values: HexBytes = Field(..., description="Public values committed by execution")
    signature: Signature
    recovery_id: int = Field(
        ..., strict=True, ge=0, le=255, description="ECDSA recovery id (v)"
    )

    def digest(self) -> bytes:
        return digest(self.vkey, self.public_values)

    def recoverable_signature(self) -> RecoverableSignature:
        return RecoverableSignature(
            r=self.signature.r, s=self.signature.s, recovery_id=self.recovery_id
        )

    def as_prefix_bytes(self) -> bytes:
        """The bytes to prepend to an encoded proof."""
        return encode_prefix(self)


class GetAddressResponse(_Payload):
    """Response of the TEE server's ``/address`` endpoint."""

    address: Address = Field(..., description="Current address of the TEE signer")


# ==============================================================================
# Stream events
# ==============================================================================


class SuccessEvent(_Payload):
    """The execution succeeded and was signed."""

    response: TEEResponse = Field(..., alias="Success")

    model_config = ConfigDict(frozen=True, extra="forbid", validate_by_name=True)


class ErrorEvent(_Payload):
    """The execution failed on the server. The message is opaque."""

    message: str = Field(..., alias="Error")

    model_config = ConfigDict(frozen=True, extra="forbid", validate_by_name=True)


EventPayload = Union[SuccessEvent, ErrorEvent]

_event_adapter: TypeAdapter[EventPayload] = TypeAdapter(EventPayload)


def decode_event(data: str | bytes) -> EventPayload:
    """Decode the JSON body of a terminal stream event.

    Raises:
        MalformedPayloadError: If the payload is not exactly one of the
            ``Success`` or ``Error`` variants.
    """
    try:
        return _event_adapter.validate_json(data, by_name=False)
    except ValidationError as e:
        raise MalformedPayloadError(f"Invalid event payload: {e}") from e


def encode_event(event: EventPayload) -> str:
    return event.encode()
