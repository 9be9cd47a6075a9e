"""Integrity proof verification and on-chain encoding.

The TEE signer signs keccak256(vkey || public_values) with a secp256k1 key.
A response is authentic only if that signature recovers to the trusted
signer address. Verified responses are encoded as a 69-byte prefix:

    selector (4) || v (1) || r (32) || s (32)

where selector is keccak256("SP1TeeVerifier")[:4], the dispatch tag of the
on-chain TEE verifier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import keccak, to_checksum_address

from .errors import AddressMismatchError, SignatureRecoveryError

if TYPE_CHECKING:
    from .api import TEEResponse

logger = logging.getLogger(__name__)

VERIFIER_DOMAIN = "SP1TeeVerifier"
SELECTOR: bytes = keccak(text=VERIFIER_DOMAIN)[:4]
PREFIX_LENGTH = 4 + 1 + 32 + 32


def digest(vkey: bytes, public_values: bytes) -> bytes:
    """Message hash signed by the TEE: keccak256(vkey || public_values)."""
    return keccak(vkey + public_values)


@dataclass(frozen=True)
class RecoverableSignature:
    """A secp256k1 signature together with its recovery id."""

    r: bytes
    s: bytes
    recovery_id: int

    def to_bytes(self) -> bytes:
        """r || s, 64 bytes."""
        return self.r + self.s

    def recover_address(self, message_hash: bytes) -> bytes:
        """Recover the 20-byte signer address for ``message_hash``.

        Raises:
            SignatureRecoveryError: If the recovery id is not 0 or 1, or the
                signature does not recover to a valid public key.
        """
        if self.recovery_id not in (0, 1):
            raise SignatureRecoveryError(f"Invalid recovery id: {self.recovery_id}")
        if len(self.r) != 32 or len(self.s) != 32:
            raise SignatureRecoveryError("Signature scalars must be 32 bytes each")

        try:
            signature = keys.Signature(
                vrs=(
                    self.recovery_id,
                    int.from_bytes(self.r, "big"),
                    int.from_bytes(self.s, "big"),
                )
            )
            public_key = signature.recover_public_key_from_msg_hash(message_hash)
        except (BadSignature, KeyValidationError, ValueError) as e:
            raise SignatureRecoveryError(f"Signature recovery failed: {e}") from e

        return public_key.to_canonical_address()


def recover_signer(response: TEEResponse) -> bytes:
    """Recover the address that signed ``response``."""
    return response.recoverable_signature().recover_address(response.digest())


def verify_response(response: TEEResponse, trusted_address: bytes) -> bytes:
    """Check that ``response`` was signed by ``trusted_address``.

    Args:
        response: Response received from the TEE server
        trusted_address: 20-byte address of the trusted TEE signer

    Returns:
        The recovered signer address

    Raises:
        SignatureRecoveryError: If no address can be recovered
        AddressMismatchError: If the recovered address is not the trusted one
    """
    recovered = recover_signer(response)
    if recovered != trusted_address:
        logger.warning(
            f"TEE signature from untrusted signer {to_checksum_address(recovered)} "
            f"for vkey 0x{response.vkey.hex()}"
        )
        raise AddressMismatchError(
            to_checksum_address(recovered), _format_address(trusted_address)
        )
    return recovered


def is_valid_response(response: TEEResponse, trusted_address: bytes) -> bool:
    """Like verify_response, but returns False instead of raising."""
    try:
        verify_response(response, trusted_address)
    except (SignatureRecoveryError, AddressMismatchError):
        return False
    return True


def encode_prefix(response: TEEResponse) -> bytes:
    """Encode ``response`` as the bytes to prepend to an on-chain proof.

    The response is not checked here; verify it first.
    """
    return (
        SELECTOR
        + response.recovery_id.to_bytes(1, "big")
        + response.recoverable_signature().to_bytes()
    )


def integrity_proof_bytes(response: TEEResponse, proof: bytes) -> bytes:
    """Prepend the TEE attestation prefix to encoded proof bytes."""
    return encode_prefix(response) + proof


def _format_address(address: bytes) -> str:
    if len(address) == 20:
        return to_checksum_address(address)
    return "0x" + address.hex()
