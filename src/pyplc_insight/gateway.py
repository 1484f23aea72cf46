"""PlcGatewayClient: async read/batch-read against the live-value gateway over HTTP+JSON."""

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from .address import DeviceAddress
from .errors import GatewayError
from .types import BatchReadRequest, BatchReadResult, DeviceReadRequest, DeviceReadResult, GatewayOptions

logger = logging.getLogger(__name__)

READ_PATH = "api/read"
BATCH_READ_PATH = "api/batch_read"


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def _without_nulls(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


def _int_values(raw: Any) -> tuple[int, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise GatewayError(f"'values' must be a list, got {type(raw).__name__}")
    return tuple(int(v) for v in raw)


class PlcGatewayClient:
    """
    Stateless request/response client for the PLC gateway.

    Every call makes exactly one attempt. Transport, timeout, HTTP status and
    decoding failures come back as results with success=False; nothing but
    task cancellation propagates to the caller.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        options: GatewayOptions | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        opts = options or GatewayOptions()
        self._base_url = base_url or opts.base_url
        self._timeout = timeout if timeout is not None else opts.timeout
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _url(self, base_url: str | None, path: str) -> str:
        base = (base_url or self._base_url).rstrip("/")
        return f"{base}/{path}"

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.warning("Error closing gateway client: %s", e)
            self._client = None

    async def __aenter__(self) -> "PlcGatewayClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def _post_json(self, url: str, payload: dict[str, Any], timeout: float | None) -> dict[str, Any]:
        client = self._get_client()
        response = await client.post(
            url,
            json=payload,
            timeout=timeout if timeout is not None else self._timeout,
        )
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as e:
            raise GatewayError(f"Gateway returned invalid JSON: {e}", url=url, cause=e) from e
        if not isinstance(body, dict):
            raise GatewayError("Gateway returned an empty or non-object response", url=url)
        return body

    async def read(
        self,
        spec: str,
        host: str | None = None,
        port: int | None = None,
        timeout: float | None = None,
        base_url: str | None = None,
    ) -> DeviceReadResult:
        """Read one device spec such as 'D100' or 'D100:2'."""
        return await self.read_request(
            DeviceReadRequest(spec=spec, host=host, port=port, timeout=timeout, base_url=base_url)
        )

    async def read_request(self, request: DeviceReadRequest) -> DeviceReadResult:
        address = DeviceAddress.parse(request.spec)
        label = address.display
        url = self._url(request.base_url, READ_PATH)
        payload = _without_nulls(
            {
                "device": address.device_class,
                "addr": address.address,
                "length": address.length,
                "ip": request.host,
                "port": request.port,
            }
        )
        logger.info("Gateway read request: POST %s %s", url, payload)
        try:
            body = await self._post_json(url, payload, request.timeout)
            values = _int_values(body.get("values"))
            flag = body.get("success")
            success = (True if flag is None else bool(flag)) and bool(values)
            error = body.get("error")
            if not success and not error:
                error = "Gateway returned no values"
            return DeviceReadResult(device=label, values=values, success=success, error=error)
        except Exception as e:
            logger.error("Gateway read failed for %s: %s", label, _error_text(e))
            return DeviceReadResult(device=label, values=(), success=False, error=_error_text(e))

    async def read_batch(
        self,
        specs: Iterable[str],
        host: str | None = None,
        port: int | None = None,
        transport: str | None = None,
        timeout: float | None = None,
        base_url: str | None = None,
    ) -> BatchReadResult:
        """Read several specs with one aggregate request."""
        return await self.read_batch_request(
            BatchReadRequest(
                specs=tuple(specs or ()),
                host=host,
                port=port,
                transport=transport,
                timeout=timeout,
                base_url=base_url,
            )
        )

    async def read_batch_request(self, request: BatchReadRequest) -> BatchReadResult:
        if not request.specs:
            return BatchReadResult(results=(), error="No devices specified")

        url = self._url(request.base_url, BATCH_READ_PATH)
        payload = _without_nulls(
            {
                "devices": list(request.specs),
                "ip": request.host,
                "port": request.port,
                "transport": request.transport,
            }
        )
        logger.info("Gateway batch read request: POST %s %s", url, payload)
        try:
            body = await self._post_json(url, payload, request.timeout)
            raw_results = body.get("results")
            if not isinstance(raw_results, list):
                return BatchReadResult(results=(), error=body.get("error") or "Batch read response was empty")
            results = tuple(_batch_item(item) for item in raw_results)
            return BatchReadResult(results=results, error=body.get("error"))
        except Exception as e:
            logger.error("Gateway batch read failed: %s", _error_text(e))
            return BatchReadResult(results=(), error=_error_text(e))


def _batch_item(item: Any) -> DeviceReadResult:
    """Map one entry of the batch response; a bad entry fails alone."""
    if not isinstance(item, dict):
        return DeviceReadResult(device="", success=False, error="Malformed batch result entry")
    device = str(item.get("device") or "")
    error = item.get("error")
    try:
        values = _int_values(item.get("values"))
    except (GatewayError, TypeError, ValueError) as e:
        return DeviceReadResult(device=device, success=False, error=_error_text(e))
    success = item.get("success")
    if success is None:
        success = error is None
    return DeviceReadResult(device=device, values=values, success=bool(success), error=error)
