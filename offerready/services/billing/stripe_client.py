"""
Low-level Stripe REST client.

Stripe takes form-encoded bodies with bracketed keys (`metadata[key]`,
`line_items[0][price]`) and answers JSON. Non-2xx answers carry
`{"error": {"message": ...}}`; that message is what callers see.

Requests are never retried: a retried checkout could create a second
customer or session.
"""

from typing import Any

import httpx

from offerready.config import settings
from offerready.errors import UpstreamError
from offerready.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = 20  # seconds


class StripeClient:
    """Async client for the handful of Stripe endpoints billing needs."""

    def __init__(self, api_key: str | None = None, base_url: str | None = None):
        self._api_key = api_key
        self._base_url = (base_url or settings.STRIPE_API_BASE_URL).rstrip("/")
        self._client = self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        await self._client.aclose()

    def _get_auth_headers(self) -> dict:
        api_key = self._api_key or settings.STRIPE_SECRET_KEY
        if not api_key:
            raise UpstreamError("Stripe not configured")
        return {
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        logger.debug(
            f"Stripe {operation} response",
            status_code=response.status_code,
            response_size=len(response.text) if response.text else 0,
        )

        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Stripe {operation} response", error=str(e))
                raise UpstreamError(f"Invalid Stripe response: {e}", response.status_code) from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                f"Stripe {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise UpstreamError(
                f"Stripe error (HTTP {response.status_code})", response.status_code
            ) from None

        error_info = error_data.get("error") or {}
        message = error_info.get("message") or f"Stripe error (HTTP {response.status_code})"
        logger.error(
            f"Stripe {operation} failed",
            status_code=response.status_code,
            error_type=error_info.get("type"),
            error_code=error_info.get("code"),
            error_message=message,
        )
        raise UpstreamError(message, response.status_code, error_data)

    async def _request(
        self, method: str, path: str, operation: str, data: dict[str, Any] | None = None
    ) -> dict:
        headers = self._get_auth_headers()
        try:
            response = await self._client.request(
                method, f"{self._base_url}{path}", data=data, headers=headers
            )
        except httpx.RequestError as e:
            logger.error(f"Stripe {operation} request failed", error=str(e))
            raise UpstreamError(f"Stripe request failed: {e}") from e
        return self._handle_api_response(response, operation)

    async def create_customer(self, email: str | None, user_id: str) -> dict:
        data = {"metadata[supabase_user_id]": user_id}
        if email:
            data["email"] = email
        customer = await self._request("POST", "/customers", "create_customer", data)
        logger.info("Stripe customer created", user_id=user_id, customer_id=customer.get("id"))
        return customer

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        trial_days: int,
    ) -> dict:
        data = {
            "customer": customer_id,
            "mode": "subscription",
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "subscription_data[trial_period_days]": str(trial_days),
            "success_url": success_url,
            "cancel_url": cancel_url,
            "allow_promotion_codes": "true",
        }
        session = await self._request("POST", "/checkout/sessions", "create_checkout_session", data)
        logger.info(
            "Stripe checkout session created",
            customer_id=customer_id,
            session_id=session.get("id"),
        )
        return session

    async def create_portal_session(self, customer_id: str, return_url: str) -> dict:
        data = {"customer": customer_id, "return_url": return_url}
        return await self._request("POST", "/billing_portal/sessions", "create_portal_session", data)

    async def get_subscription(self, subscription_id: str) -> dict:
        return await self._request("GET", f"/subscriptions/{subscription_id}", "get_subscription")


stripe_client = StripeClient()
