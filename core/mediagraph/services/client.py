"""
Service client - the boundary to the external media services.

Every node behavior reaches the outside world through exactly one call:
`call(service, payload)` returning `{"success": True, ...outputs}` or
`{"success": False, "error": "..."}`. HttpServiceClient POSTs the payload
as JSON to `{base_url}/api/{service}`.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from mediagraph.config import EngineConfig

if TYPE_CHECKING:
    from mediagraph.runtime.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class ServiceClient(Protocol):
    async def call(
        self,
        service: str,
        payload: dict[str, Any],
        token: CancellationToken | None = None,
    ) -> dict[str, Any]: ...


class HttpServiceClient:
    """
    httpx-backed ServiceClient.

    HTTP errors and network failures are turned into `success: False`
    results; only cancellation propagates as an exception.

    Example:
        async with HttpServiceClient(base_url="http://localhost:3000") as client:
            result = await client.call("generate", {"prompt": "a cat", "images": []})
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_keys: dict[str, str] | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        config: EngineConfig | None = None,
    ):
        config = config or EngineConfig()
        self.base_url = (base_url or config.service_base_url).rstrip("/")
        headers = {"Content-Type": "application/json"}
        headers.update(api_keys if api_keys is not None else config.api_keys)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout if timeout is not None else config.request_timeout,
            transport=transport,
        )

    async def call(
        self,
        service: str,
        payload: dict[str, Any],
        token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        request = self._post(service, payload)
        if token is not None:
            return await token.run(request)
        return await request

    async def _post(self, service: str, payload: dict[str, Any]) -> dict[str, Any]:
        start = time.time()
        try:
            response = await self._client.post(f"/api/{service}", json=payload)
        except httpx.TimeoutException:
            logger.warning(f"✗ {service} timed out", extra={"service": service})
            return {"success": False, "error": "Request timed out"}
        except httpx.RequestError as e:
            logger.warning(f"✗ {service} network error: {e}", extra={"service": service})
            return {"success": False, "error": f"Network error: {e}"}

        latency_ms = int((time.time() - start) * 1000)
        logger.debug(
            f"{service} responded {response.status_code}",
            extra={"service": service, "latency_ms": latency_ms},
        )
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Map an HTTP response onto the success/error result shape."""
        if response.status_code >= 400:
            return {"success": False, "error": _error_message(response)}
        try:
            result = response.json()
        except ValueError:
            return {"success": False, "error": f"Invalid JSON response: {response.text[:200]}"}
        if not isinstance(result, dict):
            return {"success": False, "error": "Unexpected response shape"}
        return result

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpServiceClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _error_message(response: httpx.Response) -> str:
    """
    `error` from a JSON body when present, else
    "HTTP {status}: {reason}" with the first 200 characters of the body.
    """
    message = f"HTTP {response.status_code}: {response.reason_phrase}"
    text = response.text
    try:
        body = json.loads(text)
    except ValueError:
        if text:
            message = f"{message} - {text[:200]}"
        return message
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return message
