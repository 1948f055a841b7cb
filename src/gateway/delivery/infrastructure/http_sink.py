"""HTTP delivery sink.

Delivers content to the downstream endpoint with a single POST. Any 2xx
response counts as delivered; everything else is a failed delivery.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from delivery.domain.value_objects import DeliveryResult
from delivery.infrastructure.observability import DefaultDeliverySinkProbe

if TYPE_CHECKING:
    from delivery.infrastructure.observability import DeliverySinkProbe


class HttpDeliverySink:
    """Delivery sink posting content to an HTTP endpoint.

    The sink never raises for transport problems. Timeouts, refused
    connections and non-2xx responses all come back as a failed
    ``DeliveryResult`` so the caller can schedule a retry.
    """

    def __init__(
        self,
        endpoint_url: str,
        timeout_seconds: float = 30.0,
        content_type: str = "text/plain",
        client: httpx.AsyncClient | None = None,
        probe: DeliverySinkProbe | None = None,
    ) -> None:
        """Initialize the sink.

        Args:
            endpoint_url: URL receiving the POST
            timeout_seconds: Per-request timeout
            content_type: Content-Type header sent with every request
            client: Optional preconfigured client; one is created otherwise
            probe: Observability probe for logging/metrics
        """
        self._endpoint_url = endpoint_url
        self._content_type = content_type
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._probe = probe or DefaultDeliverySinkProbe()

    async def deliver(self, content: str) -> DeliveryResult:
        try:
            response = await self._client.post(
                self._endpoint_url,
                content=content.encode("utf-8"),
                headers={"Content-Type": self._content_type},
            )
        except httpx.HTTPError as e:
            self._probe.delivery_error(self._endpoint_url, str(e), type(e).__name__)
            return DeliveryResult.failed(f"{type(e).__name__}: {e}")

        if response.is_success:
            self._probe.delivery_succeeded(self._endpoint_url, response.status_code)
            return DeliveryResult.ok(status_code=response.status_code)

        self._probe.delivery_rejected(self._endpoint_url, response.status_code)
        return DeliveryResult.failed(
            f"Endpoint returned HTTP {response.status_code}",
            status_code=response.status_code,
        )

    async def aclose(self) -> None:
        """Close the underlying client if this sink created it."""
        if self._owns_client:
            await self._client.aclose()
