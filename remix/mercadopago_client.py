"""Mercado Pago API client for looking up payment status."""

from __future__ import annotations

import asyncio
import logging

import httpx

from remix.errors import PaymentProviderError
from remixhub.config import settings

logger = logging.getLogger(__name__)

# Errors worth retrying (transient)
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}
_MAX_RETRIES = 3
_BASE_DELAY = 1.0  # seconds


class MercadoPagoClient:
    """Read-only client for Mercado Pago payments."""

    def __init__(
        self,
        access_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        base_delay: float = _BASE_DELAY,
    ):
        self.access_token = access_token or settings.mercadopago_access_token
        if not self.access_token:
            raise ValueError(
                "Mercado Pago access token is required. "
                "Set REMIXHUB_MERCADOPAGO_ACCESS_TOKEN as an environment variable."
            )
        self.base_url = settings.mercadopago_api_base.rstrip("/")
        self.headers = {"Authorization": f"Bearer {self.access_token}"}
        self.base_delay = base_delay
        self._client = httpx.AsyncClient(timeout=30.0, transport=transport)

    async def close(self):
        await self._client.aclose()

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with exponential backoff retry on transient errors."""
        for attempt in range(_MAX_RETRIES + 1):
            try:
                resp = await self._client.request(method, url, headers=self.headers, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as exc:
                if attempt >= _MAX_RETRIES:
                    raise PaymentProviderError(
                        f"{type(exc).__name__} on {method} {url} "
                        f"after {_MAX_RETRIES + 1} attempts"
                    ) from exc
                delay = self.base_delay * (2 ** attempt)
                logger.warning(
                    "%s on %s %s, retrying in %.1fs (attempt %d/%d)",
                    type(exc).__name__, method, url, delay, attempt + 1, _MAX_RETRIES,
                )
                await asyncio.sleep(delay)
                continue

            if resp.status_code in _RETRYABLE_STATUS_CODES and attempt < _MAX_RETRIES:
                delay = self.base_delay * (2 ** attempt)
                logger.warning(
                    "Retryable %d from %s %s, retrying in %.1fs (attempt %d/%d)",
                    resp.status_code, method, url, delay, attempt + 1, _MAX_RETRIES,
                )
                await asyncio.sleep(delay)
                continue
            if resp.status_code >= 400:
                raise PaymentProviderError(
                    f"Mercado Pago error {resp.status_code}: {resp.text}"
                )
            return resp
        raise PaymentProviderError(f"Mercado Pago unreachable: {method} {url}")

    async def get_payment(self, payment_id: str | int) -> dict:
        """Fetch a payment; the dict carries status and external_reference."""
        resp = await self._request_with_retry("GET", f"{self.base_url}/v1/payments/{payment_id}")
        return resp.json()
