"""Trusted TEE signer address cache.

The address returned by the TEE server's ``/address`` endpoint is itself
untrusted input. Callers decide how it is established: pin a value that
was distributed out-of-band, or refresh it from an endpoint they already
trust. A TrustedSigner is shared by all verifications in a process and is
passed explicitly so that tests can pin a fixed address.

Reads never take the lock. Each update swaps in a new immutable snapshot,
so a verification sees either the old address or the new one.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Protocol

from eth_utils import to_checksum_address

from .api import GetAddressResponse, TEEResponse
from .errors import ConfigurationError, SignerNotInitializedError
from .settings import get_setting
from .verify import verify_response

logger = logging.getLogger(__name__)


class AddressSource(Protocol):
    def get_address(self) -> bytes: ...


class AsyncAddressSource(Protocol):
    async def get_address(self) -> bytes: ...


@dataclass(frozen=True)
class SignerSnapshot:
    """One version of the trusted signer address."""

    address: bytes
    source: str  # "pinned" or "endpoint"
    updated_at: float

    @property
    def checksum_address(self) -> str:
        return to_checksum_address(self.address)


class TrustedSigner:
    """Process-wide trusted signer address with a serialized update path."""

    def __init__(self, address: bytes | str | None = None):
        self._lock = threading.Lock()
        self._snapshot: SignerSnapshot | None = None
        if address is not None:
            self.pin(address)

    @classmethod
    def from_settings(cls) -> TrustedSigner:
        """Pin the address configured in SP1_TEE_SIGNER_ADDRESS, if any."""
        configured = get_setting("signer.address")
        return cls(configured or None)

    @property
    def snapshot(self) -> SignerSnapshot | None:
        return self._snapshot

    @property
    def address(self) -> bytes:
        snapshot = self._snapshot
        if snapshot is None:
            raise SignerNotInitializedError("No trusted TEE signer address has been set")
        return snapshot.address

    def pin(self, address: bytes | str) -> SignerSnapshot:
        """Trust ``address``, replacing any previous value."""
        return self._swap(_parse_address(address), "pinned")

    def refresh(self, client: AddressSource) -> SignerSnapshot:
        """Fetch the current signer address from ``client`` and trust it.

        The fetched value is only as trustworthy as the connection to the
        TEE server.
        """
        return self._swap(_parse_address(client.get_address()), "endpoint")

    async def arefresh(self, client: AsyncAddressSource) -> SignerSnapshot:
        """Async variant of refresh."""
        return self._swap(_parse_address(await client.get_address()), "endpoint")

    def verify(self, response: TEEResponse) -> bytes:
        """Verify ``response`` against the current trusted address."""
        return verify_response(response, self.address)

    def _swap(self, address: bytes, source: str) -> SignerSnapshot:
        with self._lock:
            previous = self._snapshot
            snapshot = SignerSnapshot(address=address, source=source, updated_at=time.time())
            self._snapshot = snapshot

        if previous is None:
            logger.info(f"Trusted TEE signer set to {snapshot.checksum_address} ({source})")
        elif previous.address != address:
            logger.info(
                f"Trusted TEE signer rotated: {previous.checksum_address} -> "
                f"{snapshot.checksum_address} ({source})"
            )
        return snapshot


def _parse_address(value: bytes | str) -> bytes:
    try:
        return GetAddressResponse.model_validate({"address": value}).address
    except ValueError as e:
        raise ConfigurationError(f"Invalid signer address {value!r}: {e}") from e
