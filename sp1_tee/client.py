"""SP1 TEE Client - HTTP client for the SP1 TEE signing server.

Trust Model:
    Client --> TEE server (/execute, streamed) --> TEEResponse
           --> TrustedSigner (pinned or refreshed address) --> verified proof

The server answers ``POST /execute`` with a server-sent event stream. The
first ``message`` event is terminal and carries an EventPayload; any other
event (comments, ``open``, keep-alives) is skipped. A stream that ends
before a terminal event is a disconnect, not a server error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from .api import (
    ErrorEvent,
    EventPayload,
    GetAddressResponse,
    SuccessEvent,
    TEERequest,
    TEEResponse,
    decode_event,
)
from .errors import ConfigurationError, RemoteError, RequestState, TransportError
from .settings import get_setting, get_setting_optional_float
from .signer import TrustedSigner

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "user-agent": "sp1-tee/0.1",
}

EXECUTE_HEADERS = {
    "content-type": "application/json",
    "accept": "text/event-stream",
}


@dataclass
class ServerSentEvent:
    """A dispatched server-sent event."""

    event: str = "message"
    data: str = ""
    id: str | None = None


@dataclass
class _SSEDecoder:
    """Incremental decoder for ``text/event-stream`` lines."""

    _event: str = ""
    _data: list[str] = field(default_factory=list)
    _id: str | None = None

    def feed(self, line: str) -> ServerSentEvent | None:
        if not line:
            return self.flush()
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        # "retry" and unknown fields are ignored
        return None

    def flush(self) -> ServerSentEvent | None:
        if not self._data:
            self._event = ""
            return None
        sse = ServerSentEvent(event=self._event or "message", data="\n".join(self._data), id=self._id)
        self._event = ""
        self._data = []
        return sse


def _resolve(request_id: str, payload: EventPayload) -> TEEResponse:
    if isinstance(payload, SuccessEvent):
        logger.debug(f"TEE request {request_id}: {RequestState.SUCCESS.value}")
        return payload.response
    if isinstance(payload, ErrorEvent):
        logger.debug(f"TEE request {request_id}: {RequestState.ERROR.value}")
        raise RemoteError(payload.message)
    raise TypeError(f"Unhandled event payload: {type(payload).__name__}")


def _terminal_event(request_id: str, sse: ServerSentEvent | None) -> EventPayload | None:
    if sse is None:
        return None
    if sse.event != "message":
        logger.debug(f"TEE request {request_id}: skipping '{sse.event}' event")
        return None
    return decode_event(sse.data)


def _disconnected(request_id: str) -> TransportError:
    logger.warning(f"TEE request {request_id}: stream closed before a terminal event")
    return TransportError(
        "TEE server closed the stream before a terminal event",
        state=RequestState.DISCONNECTED,
    )


def _settings_kwargs() -> dict:
    url = get_setting("server.url")
    if not url:
        raise ConfigurationError("SP1_TEE_SERVER_URL is not set")
    return {"server_url": url, "timeout": get_setting_optional_float("server.timeout")}


class TEEClient:
    """Client for the SP1 TEE server.

    Example:
        signer = TrustedSigner("0x...")
        with TEEClient("https://tee.example.com") as client:
            response = client.execute_verified(TEERequest.create(elf, stdin), signer)
            proof = integrity_proof_bytes(response, proof_bytes)
    """

    def __init__(
        self,
        server_url: str,
        timeout: float | None = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Create a TEE client.

        Args:
            server_url: Base URL of the TEE server
            timeout: Request timeout in seconds (None disables it)
            transport: Custom httpx transport, mostly for tests
        """
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout, headers=DEFAULT_HEADERS, transport=transport)

    @classmethod
    def from_settings(cls, transport: httpx.BaseTransport | None = None) -> TEEClient:
        """Create a client from SP1_TEE_SERVER_URL and SP1_TEE_TIMEOUT."""
        return cls(transport=transport, **_settings_kwargs())

    def get_address(self) -> bytes:
        """Fetch the TEE server's current signer address.

        The result is not authenticated; see TrustedSigner.

        Raises:
            TransportError: If the request fails
            MalformedPayloadError: If the response body is invalid
        """
        try:
            response = self._client.get(f"{self.server_url}/address")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Get address request failed: {e}") from e
        return GetAddressResponse.decode(response.content).address

    def execute(self, request: TEERequest) -> TEEResponse:
        """Execute a program in the TEE and wait for its signed response.

        Returns:
            The unverified TEEResponse

        Raises:
            RemoteError: If the server reports an execution failure
            TransportError: If the request fails or the stream drops
            MalformedPayloadError: If the terminal event cannot be decoded
        """
        request_id = request.id.hex()
        state = RequestState.CREATED
        logger.debug(f"TEE request {request_id}: {state.value}")

        try:
            state = RequestState.SENT
            with self._client.stream(
                "POST",
                f"{self.server_url}/execute",
                content=request.encode(),
                headers=EXECUTE_HEADERS,
            ) as response:
                if response.is_error:
                    response.read()
                    raise TransportError(
                        f"Execute request failed: HTTP {response.status_code} {response.text}",
                        state=state,
                    )

                state = RequestState.STREAMING
                logger.debug(f"TEE request {request_id}: {state.value}")
                decoder = _SSEDecoder()
                for line in response.iter_lines():
                    payload = _terminal_event(request_id, decoder.feed(line))
                    if payload is not None:
                        return _resolve(request_id, payload)

                payload = _terminal_event(request_id, decoder.flush())
                if payload is not None:
                    return _resolve(request_id, payload)
        except httpx.HTTPError as e:
            logger.warning(f"TEE request {request_id}: transport error while {state.value}: {e}")
            raise TransportError(f"Execute request failed: {e}", state=state) from e

        raise _disconnected(request_id)

    def execute_verified(self, request: TEERequest, signer: TrustedSigner) -> TEEResponse:
        """Execute ``request`` and verify the response against ``signer``.

        Raises:
            SignatureRecoveryError: If the signature is invalid
            AddressMismatchError: If the response was signed by another key
            SignerNotInitializedError: If ``signer`` holds no address yet
        """
        response = self.execute(request)
        signer.verify(response)
        logger.info(f"Verified TEE integrity proof for vkey 0x{response.vkey.hex()}")
        return response

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class AsyncTEEClient:
    """Async variant of TEEClient backed by httpx.AsyncClient."""

    def __init__(
        self,
        server_url: str,
        timeout: float | None = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            timeout=timeout, headers=DEFAULT_HEADERS, transport=transport
        )

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> AsyncTEEClient:
        return cls(transport=transport, **_settings_kwargs())

    async def get_address(self) -> bytes:
        try:
            response = await self._client.get(f"{self.server_url}/address")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Get address request failed: {e}") from e
        return GetAddressResponse.decode(response.content).address

    async def execute(self, request: TEERequest) -> TEEResponse:
        request_id = request.id.hex()
        state = RequestState.CREATED
        logger.debug(f"TEE request {request_id}: {state.value}")

        try:
            state = RequestState.SENT
            async with self._client.stream(
                "POST",
                f"{self.server_url}/execute",
                content=request.encode(),
                headers=EXECUTE_HEADERS,
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise TransportError(
                        f"Execute request failed: HTTP {response.status_code} {response.text}",
                        state=state,
                    )

                state = RequestState.STREAMING
                logger.debug(f"TEE request {request_id}: {state.value}")
                decoder = _SSEDecoder()
                async for line in response.aiter_lines():
                    payload = _terminal_event(request_id, decoder.feed(line))
                    if payload is not None:
                        return _resolve(request_id, payload)

                payload = _terminal_event(request_id, decoder.flush())
                if payload is not None:
                    return _resolve(request_id, payload)
        except httpx.HTTPError as e:
            logger.warning(f"TEE request {request_id}: transport error while {state.value}: {e}")
            raise TransportError(f"Execute request failed: {e}", state=state) from e

        raise _disconnected(request_id)

    async def execute_verified(self, request: TEERequest, signer: TrustedSigner) -> TEEResponse:
        response = await self.execute(request)
        signer.verify(response)
        logger.info(f"Verified TEE integrity proof for vkey 0x{response.vkey.hex()}")
        return response

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
