"""Tests for TEE wire payloads."""

import json

import pytest
from eth_utils import to_checksum_address
from pydantic import ValidationError

from sp1_tee.api import (
    ErrorEvent,
    GetAddressResponse,
    Signature,
    SuccessEvent,
    TEEProof,
    TEERequest,
    TEEResponse,
    decode_event,
    encode_event,
)
from sp1_tee.errors import MalformedPayloadError


class TestTEERequest:
    def test_round_trip(self):
        request = TEERequest(id=bytes(32), program=b"p", stdin=b"")
        decoded = TEERequest.decode(request.encode())

        assert decoded == request
        assert decoded.id == bytes(32)
        assert decoded.program == b"p"
        assert decoded.stdin == b""

    def test_round_trip_large(self):
        program = bytes(range(256)) * 1024
        request = TEERequest(id=b"\xab" * 32, program=program, stdin=b"\x00" * 4096)
        decoded = TEERequest.decode(request.encode())

        assert decoded.program == program
        assert decoded.stdin == b"\x00" * 4096

    def test_wire_fields(self):
        request = TEERequest(id=b"\x01" * 32, program=b"\xca\xfe", stdin=b"\x00")
        payload = json.loads(request.encode())

        assert list(payload) == ["id", "program", "stdin"]
        assert payload["id"] == "0x" + "01" * 32
        assert payload["program"] == "0xcafe"
        assert payload["stdin"] == "0x00"

    def test_accepts_unprefixed_hex(self):
        data = json.dumps({"id": "00" * 32, "program": "70", "stdin": ""})
        request = TEERequest.decode(data)
        assert request.program == b"p"

    @pytest.mark.parametrize("request_id", ["0x" + "00" * 31, "0x" + "00" * 33])
    def test_id_must_be_32_bytes(self, request_id):
        data = json.dumps({"id": request_id, "program": "0x", "stdin": "0x"})
        with pytest.raises(MalformedPayloadError):
            TEERequest.decode(data)

    def test_id_length_checked_on_construction(self):
        with pytest.raises(ValidationError):
            TEERequest(id=b"\x00" * 16, program=b"", stdin=b"")

    def test_create_draws_fresh_ids(self):
        first = TEERequest.create(b"p", b"")
        second = TEERequest.create(b"p", b"")

        assert len(first.id) == 32
        assert first.id != second.id

    def test_invalid_hex(self):
        data = json.dumps({"id": "0x" + "zz" * 32, "program": "0x", "stdin": "0x"})
        with pytest.raises(MalformedPayloadError):
            TEERequest.decode(data)

    @pytest.mark.parametrize("request_id", ["00 " * 32, "0x" + "00" * 31 + "\t00", " " + "00" * 32])
    def test_hex_with_whitespace_rejected(self, request_id):
        data = json.dumps({"id": request_id, "program": "0x", "stdin": "0x"})
        with pytest.raises(MalformedPayloadError):
            TEERequest.decode(data)

    def test_unknown_field(self):
        data = json.dumps({"id": "0x" + "00" * 32, "program": "0x", "stdin": "0x", "x": 1})
        with pytest.raises(MalformedPayloadError):
            TEERequest.decode(data)

    def test_not_json(self):
        with pytest.raises(MalformedPayloadError):
            TEERequest.decode(b"\x00\x01not json")


class TestTEEResponse:
    def test_round_trip(self, signed_response):
        decoded = TEEResponse.decode(signed_response.encode())
        assert decoded == signed_response

    def test_round_trip_empty_public_values(self, sign):
        response = sign(public_values=b"")
        decoded = TEEResponse.decode(response.encode())

        assert decoded.public_values == b""
        assert decoded.signature == response.signature

    def test_wire_fields(self, signed_response):
        payload = json.loads(signed_response.encode())

        assert list(payload) == ["vkey", "public_values", "signature", "recovery_id"]
        assert list(payload["signature"]) == ["r", "s"]
        assert payload["signature"]["r"] == "0x" + signed_response.signature.r.hex()
        assert payload["recovery_id"] in (0, 1)

    def test_recovery_id_must_fit_in_a_byte(self, signed_response):
        payload = json.loads(signed_response.encode())
        payload["recovery_id"] = 256
        with pytest.raises(MalformedPayloadError):
            TEEResponse.decode(json.dumps(payload))

    @pytest.mark.parametrize("recovery_id", ["1", True, 1.0, None])
    def test_recovery_id_must_be_an_integer(self, signed_response, recovery_id):
        """Non-integer JSON values are rejected, not coerced."""
        payload = json.loads(signed_response.encode())
        payload["recovery_id"] = recovery_id
        with pytest.raises(MalformedPayloadError):
            TEEResponse.decode(json.dumps(payload))

    def test_round_trip_large_public_values(self, sign):
        public_values = bytes(range(256)) * 1024
        response = sign(public_values=public_values)
        decoded = TEEResponse.decode(response.encode())

        assert decoded == response
        assert decoded.public_values == public_values

    def test_signature_scalars_must_be_32_bytes(self):
        with pytest.raises(ValidationError):
            Signature(r=b"\x01" * 31, s=b"\x01" * 32)

    def test_immutable(self, signed_response):
        with pytest.raises(ValidationError):
            signed_response.recovery_id = 1


class TestGetAddressResponse:
    def test_decode_lowercase(self, signer_address):
        payload = json.dumps({"address": "0x" + signer_address.hex()})
        assert GetAddressResponse.decode(payload).address == signer_address

    def test_encodes_checksum_address(self, signer_address):
        payload = json.loads(GetAddressResponse(address=signer_address).encode())
        assert payload["address"] == to_checksum_address(signer_address)

    def test_wrong_length(self):
        with pytest.raises(MalformedPayloadError):
            GetAddressResponse.decode(json.dumps({"address": "0x" + "11" * 19}))

    def test_missing_address(self):
        with pytest.raises(MalformedPayloadError):
            GetAddressResponse.decode("{}")


class TestEvents:
    def test_error_event(self):
        """An Error payload decodes to the Error variant with the exact message."""
        event = decode_event('{"Error": "execution failed"}')

        assert isinstance(event, ErrorEvent)
        assert not isinstance(event, SuccessEvent)
        assert event.message == "execution failed"

    def test_error_message_is_verbatim(self):
        message = '  {"Success": 1} \n unicode: ✓  '
        event = decode_event(encode_event(ErrorEvent(Error=message)))

        assert isinstance(event, ErrorEvent)
        assert event.message == message

    def test_success_event_round_trip(self, signed_response):
        encoded = encode_event(SuccessEvent(Success=signed_response))
        assert list(json.loads(encoded)) == ["Success"]

        event = decode_event(encoded)
        assert isinstance(event, SuccessEvent)
        assert event.response == signed_response

    def test_success_event_round_trip_large(self, sign):
        response = sign(public_values=b"\x5a" * (256 * 1024))
        event = decode_event(encode_event(SuccessEvent(Success=response)))

        assert isinstance(event, SuccessEvent)
        assert event.response == response
        assert len(event.response.public_values) == 256 * 1024

    def test_construct_by_field_name(self, signed_response):
        assert SuccessEvent(response=signed_response).response == signed_response
        assert ErrorEvent(message="boom") == ErrorEvent(Error="boom")
        assert json.loads(encode_event(ErrorEvent(message="boom"))) == {"Error": "boom"}

    @pytest.mark.parametrize("data", ['{"message": "boom"}', '{"response": {}}'])
    def test_field_names_not_accepted_on_the_wire(self, data):
        with pytest.raises(MalformedPayloadError):
            decode_event(data)

    def test_both_tags_rejected(self, signed_response):
        payload = {
            "Success": json.loads(signed_response.encode()),
            "Error": "execution failed",
        }
        with pytest.raises(MalformedPayloadError):
            decode_event(json.dumps(payload))

    @pytest.mark.parametrize(
        "data",
        ["{}", '{"Pending": null}', '"Error"', '{"Error": 5}', '{"Success": {}}', "nope"],
    )
    def test_malformed(self, data):
        with pytest.raises(MalformedPayloadError):
            decode_event(data)


class TestTEEProof:
    def test_enabled(self):
        assert TEEProof.NITRO_INTEGRITY.enabled
        assert not TEEProof.NONE.enabled

    def test_from_value(self):
        assert TEEProof("nitro_integrity") is TEEProof.NITRO_INTEGRITY
