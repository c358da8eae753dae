"""PayPal billing: subscriptions and webhook events"""

from .router import router, webhooks_router

__all__ = ["router", "webhooks_router"]
