"""Pytest configuration and fixtures for SP1 TEE tests."""

import pytest
from eth_keys import keys

from sp1_tee.api import Signature, TEEResponse
from sp1_tee.settings import clear_settings
from sp1_tee.verify import digest

# Well-known test key; its address is 0x2c7536E3605D9C16a7a3D7b1898e529396a65c23
TEST_PRIVATE_KEY = bytes.fromhex(
    "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
)
OTHER_PRIVATE_KEY = bytes.fromhex("01" * 32)

TEST_VKEY = bytes(range(32))
TEST_PUBLIC_VALUES = b"\x2a" * 8


@pytest.fixture(autouse=True)
def clear_overrides():
    """Drop setting overrides before and after each test for isolation."""
    clear_settings()
    yield
    clear_settings()


@pytest.fixture
def test_key():
    return keys.PrivateKey(TEST_PRIVATE_KEY)


@pytest.fixture
def signer_address(test_key) -> bytes:
    return test_key.public_key.to_canonical_address()


@pytest.fixture
def other_key():
    return keys.PrivateKey(OTHER_PRIVATE_KEY)


@pytest.fixture
def other_address(other_key) -> bytes:
    return other_key.public_key.to_canonical_address()


@pytest.fixture
def sign(test_key):
    """Factory that signs (vkey, public_values) the way the TEE server does."""

    def _sign(vkey=TEST_VKEY, public_values=TEST_PUBLIC_VALUES, key=None) -> TEEResponse:
        if key is None:
            key = test_key
        sig = key.sign_msg_hash(digest(vkey, public_values))
        return TEEResponse(
            vkey=vkey,
            public_values=public_values,
            signature=Signature(r=sig.r.to_bytes(32, "big"), s=sig.s.to_bytes(32, "big")),
            recovery_id=sig.v,
        )

    return _sign


@pytest.fixture
def signed_response(sign) -> TEEResponse:
    return sign()
