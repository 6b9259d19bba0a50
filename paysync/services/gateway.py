"""Razorpay client: one remote call per operation, no retries, normalized errors."""

import asyncio
from typing import Any, Callable

import razorpay
import requests
from razorpay.errors import BadRequestError as RazorpayBadRequestError
from razorpay.errors import GatewayError as RazorpayGatewayError
from razorpay.errors import ServerError as RazorpayServerError

from paysync.core.config import get_settings
from paysync.core.exceptions import (
    ConfigurationError,
    GatewayNotFoundError,
    GatewayRequestError,
    GatewayTransientError,
)
from paysync.core.logging import get_logger
from paysync.models.gateway import GatewayOrder, GatewayOrderPage, GatewayPayment

log = get_logger(__name__)

# Razorpay answers unknown or malformed ids with a 400 carrying one of these
_NOT_FOUND_MARKERS = ("does not exist", "not a valid id", "invalid id", "id provided")


def _is_not_found(message: str) -> bool:
    m = message.lower()
    return any(marker in m for marker in _NOT_FOUND_MARKERS)


class RazorpayGateway:
    def __init__(self, client: Any):
        self._client = client

    async def _call(self, fn: Callable[..., Any], *args: Any, order_id: str | None = None) -> Any:
        # The SDK is blocking (requests); run it off the loop so a chunk's calls overlap
        try:
            return await asyncio.to_thread(fn, *args)
        except RazorpayBadRequestError as e:
            message = str(e) or "Bad request"
            if _is_not_found(message):
                raise GatewayNotFoundError(message, order_id=order_id) from e
            raise GatewayRequestError(message, order_id=order_id) from e
        except (RazorpayServerError, RazorpayGatewayError) as e:
            raise GatewayTransientError(str(e) or "Gateway error", order_id=order_id) from e
        except requests.RequestException as e:
            raise GatewayTransientError(f"Network error: {e}", order_id=order_id) from e

    async def fetch_order(self, order_id: str) -> GatewayOrder:
        data = await self._call(self._client.order.fetch, order_id, order_id=order_id)
        return GatewayOrder.from_api(data)

    async def fetch_order_payments(self, order_id: str) -> list[GatewayPayment]:
        data = await self._call(self._client.order.payments, order_id, order_id=order_id)
        return [GatewayPayment.model_validate(p) for p in data.get("items", [])]

    async def list_orders(
        self,
        count: int = 10,
        skip: int = 0,
        from_ts: int | None = None,
        to_ts: int | None = None,
    ) -> GatewayOrderPage:
        params: dict[str, Any] = {"count": count, "skip": skip}
        if from_ts is not None:
            params["from"] = from_ts
        if to_ts is not None:
            params["to"] = to_ts
        data = await self._call(self._client.order.all, params)
        items = [GatewayOrder.from_api(o) for o in data.get("items", [])]
        return GatewayOrderPage(items=items, count=data.get("count", len(items)))


def get_gateway() -> RazorpayGateway:
    """Build the gateway client; missing credentials fail here, before any request is made."""
    settings = get_settings()
    if not settings.razorpay_configured:
        raise ConfigurationError("Razorpay credentials not configured")
    client = razorpay.Client(auth=(settings.razorpay_key_id, settings.razorpay_key_secret))
    return RazorpayGateway(client)
