"""PayPal service - Integration with the PayPal REST API (plans, subscriptions, webhooks)"""

import logging
import time
import uuid
from typing import Any, Optional

import httpx

from ... import config
from ...cache import PAYPAL_PLANS_CACHE_KEY, PAYPAL_PLANS_TTL, cache

logger = logging.getLogger(__name__)

# Refresh the OAuth token this many seconds before PayPal expires it
TOKEN_EXPIRY_MARGIN = 60


class PayPalAPIError(Exception):
    """Non-2xx answer (or transport failure, status_code None) from PayPal"""

    def __init__(self, status_code: Optional[int], body: Any):
        self.status_code = status_code
        self.body = body
        super().__init__(f"PayPal API error: {status_code} - {body}")


class PayPalService:
    """Service for PayPal API operations"""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = config.PAYPAL_TIMEOUT,
    ):
        self.client_id = client_id if client_id is not None else config.PAYPAL_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else config.PAYPAL_CLIENT_SECRET
        self.base_url = base_url or config.PAYPAL_BASE_URL
        self.timeout = timeout
        self._transport = transport
        self._access_token: Optional[str] = None
        self._token_expiry: float = 0

        if not self.is_available():
            logger.warning("PAYPAL_CLIENT_ID/PAYPAL_CLIENT_SECRET not set; billing endpoints will fail until configured")

    def is_available(self) -> bool:
        """Check if PayPal credentials are configured"""
        return bool(self.client_id and self.client_secret)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    # ===== Authentication =====

    async def get_access_token(self) -> str:
        if self._access_token and time.time() < self._token_expiry:
            return self._access_token

        try:
            async with self._client() as client:
                response = await client.post(
                    "/v1/oauth2/token",
                    auth=(self.client_id or "", self.client_secret or ""),
                    headers={"Accept": "application/json", "Accept-Language": "en_US"},
                    data={"grant_type": "client_credentials"},
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ PayPal auth request failed: {e}")
            raise PayPalAPIError(None, {"error": str(e)}) from e

        if response.status_code != 200:
            logger.error(f"❌ PayPal auth failed: {response.status_code}")
            raise PayPalAPIError(response.status_code, _safe_json(response))

        token_data = response.json()
        self._access_token = token_data["access_token"]
        self._token_expiry = time.time() + int(token_data.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN
        logger.info("✅ PayPal access token refreshed")
        return self._access_token

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> dict:
        token = await self.get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "PayPal-Request-Id": str(uuid.uuid4()),
        }

        try:
            async with self._client() as client:
                response = await client.request(method, endpoint, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"❌ PayPal {method} {endpoint} failed: {e}")
            raise PayPalAPIError(None, {"error": str(e)}) from e

        if response.status_code >= 400:
            body = _safe_json(response)
            logger.error(f"❌ PayPal {method} {endpoint} -> {response.status_code}: {body}")
            raise PayPalAPIError(response.status_code, body)

        # cancel/suspend/activate answer 204 No Content
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # ===== Plans =====

    async def get_plans(self, use_cache: bool = True) -> dict:
        if use_cache:
            cached = cache.get(PAYPAL_PLANS_CACHE_KEY)
            if cached is not None:
                return cached

        plans = await self._request("GET", "/v1/billing/plans", params={"page_size": 20})
        cache.set(PAYPAL_PLANS_CACHE_KEY, plans, PAYPAL_PLANS_TTL)
        return plans

    async def get_plan(self, plan_id: str) -> dict:
        return await self._request("GET", f"/v1/billing/plans/{plan_id}")

    async def update_plan_pricing(self, plan_id: str, new_price: str, currency_code: str = "USD") -> dict:
        result = await self._request(
            "PATCH",
            f"/v1/billing/plans/{plan_id}",
            json=[
                {
                    "op": "replace",
                    "path": "/billing_cycles/@sequence==1/pricing_scheme/fixed_price",
                    "value": {"currency_code": currency_code, "value": str(new_price)},
                }
            ],
        )
        cache.delete(PAYPAL_PLANS_CACHE_KEY)
        logger.info(f"💲 PayPal plan {plan_id} price set to {new_price} {currency_code}")
        return result

    async def activate_plan(self, plan_id: str) -> dict:
        result = await self._request("POST", f"/v1/billing/plans/{plan_id}/activate")
        cache.delete(PAYPAL_PLANS_CACHE_KEY)
        return result

    async def deactivate_plan(self, plan_id: str) -> dict:
        result = await self._request("POST", f"/v1/billing/plans/{plan_id}/deactivate")
        cache.delete(PAYPAL_PLANS_CACHE_KEY)
        return result

    # ===== Subscriptions =====

    async def get_subscriptions(self, status: Optional[str] = None) -> dict:
        params = {"page_size": 20}
        if status:
            params["status"] = status
        return await self._request("GET", "/v1/billing/subscriptions", params=params)

    async def get_subscription(self, subscription_id: str) -> dict:
        return await self._request("GET", f"/v1/billing/subscriptions/{subscription_id}")

    async def cancel_subscription(self, subscription_id: str, reason: str) -> dict:
        return await self._request(
            "POST", f"/v1/billing/subscriptions/{subscription_id}/cancel", json={"reason": reason}
        )

    async def suspend_subscription(self, subscription_id: str, reason: str) -> dict:
        return await self._request(
            "POST", f"/v1/billing/subscriptions/{subscription_id}/suspend", json={"reason": reason}
        )

    async def activate_subscription(self, subscription_id: str, reason: str) -> dict:
        return await self._request(
            "POST", f"/v1/billing/subscriptions/{subscription_id}/activate", json={"reason": reason}
        )

    async def revise_subscription(self, subscription_id: str, plan_id: str) -> dict:
        return await self._request(
            "POST",
            f"/v1/billing/subscriptions/{subscription_id}/revise",
            json={
                "plan_id": plan_id,
                "application_context": {
                    "user_action": "SUBSCRIBE_NOW",
                    "payment_method": {
                        "payer_selected": "PAYPAL",
                        "payee_preferred": "IMMEDIATE_PAYMENT_REQUIRED",
                    },
                },
            },
        )

    async def capture_outstanding_balance(
        self, subscription_id: str, amount: str, currency_code: str = "USD", note: str = ""
    ) -> dict:
        """Charge the subscription's outstanding balance (retry of a failed payment)"""
        return await self._request(
            "POST",
            f"/v1/billing/subscriptions/{subscription_id}/capture",
            json={
                "note": note or "Retry of failed payment",
                "capture_type": "OUTSTANDING_BALANCE",
                "amount": {"currency_code": currency_code, "value": str(amount)},
            },
        )

    async def get_subscription_transactions(self, subscription_id: str, start_time: str, end_time: str) -> dict:
        return await self._request(
            "GET",
            f"/v1/billing/subscriptions/{subscription_id}/transactions",
            params={"start_time": start_time, "end_time": end_time},
        )

    # ===== Webhooks (polling only) =====

    async def get_webhook_events(self, page_size: int = 10) -> dict:
        return await self._request("GET", "/v1/notifications/webhooks-events", params={"page_size": page_size})

    async def get_webhook_event(self, event_id: str) -> dict:
        return await self._request("GET", f"/v1/notifications/webhooks-events/{event_id}")

    async def verify_webhook_signature(self, headers: dict, webhook_event: dict, webhook_id: str) -> dict:
        headers = {k.lower(): v for k, v in headers.items()}
        return await self._request(
            "POST",
            "/v1/notifications/verify-webhook-signature",
            json={
                "transmission_id": headers.get("paypal-transmission-id"),
                "transmission_time": headers.get("paypal-transmission-time"),
                "cert_url": headers.get("paypal-cert-url"),
                "auth_algo": headers.get("paypal-auth-algo"),
                "transmission_sig": headers.get("paypal-transmission-sig"),
                "webhook_id": webhook_id,
                "webhook_event": webhook_event,
            },
        )


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


def plan_price(paypal_plan: dict) -> Optional[float]:
    """Fixed price of the plan's first billing cycle, None when absent"""
    cycles = paypal_plan.get("billing_cycles") or []
    if not cycles:
        return None
    value = ((cycles[0].get("pricing_scheme") or {}).get("fixed_price") or {}).get("value")
    if value in (None, ""):
        return None
    return float(value)


def has_payment_issues(subscription: dict) -> bool:
    billing_info = subscription.get("billing_info") or {}
    outstanding = (billing_info.get("outstanding_balance") or {}).get("value") or "0"
    return (billing_info.get("failed_payments_count") or 0) > 0 or float(outstanding) > 0


# Global instance
paypal_service = PayPalService()


def get_paypal_service() -> PayPalService:
    """Dependency injection for PayPalService"""
    return paypal_service
