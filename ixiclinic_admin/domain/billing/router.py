"""Billing router - FastAPI endpoints for PayPal subscriptions and webhook events"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import AdminUser, require_permission
from ...document_store import DocumentStore, get_store
from ..plans.store import PlansStore, get_plans_store
from .paypal_service import PayPalService, get_paypal_service
from .schemas import (
    ReasonRequest,
    ReviseRequest,
    SubscriptionActionResult,
    SubscriptionListResponse,
    SubscriptionView,
    UsageMetrics,
    WebhookSignatureRequest,
    WebhookSignatureResult,
)
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])
webhooks_router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def get_subscription_service(
    paypal: PayPalService = Depends(get_paypal_service),
    store: DocumentStore = Depends(get_store),
    plans: PlansStore = Depends(get_plans_store),
) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(paypal, store, plans)


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================


@router.get("", response_model=SubscriptionListResponse)
async def list_subscriptions(
    search: Optional[str] = Query(None, description="Subscriber email or subscription ID"),
    status: Optional[str] = Query(None),
    admin: AdminUser = Depends(require_permission("read")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.list_subscriptions(search, status)


@router.get("/problems", response_model=list[SubscriptionView])
async def get_problem_subscriptions(
    admin: AdminUser = Depends(require_permission("read")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Suspended subscriptions and those with failed payments or a balance owed"""
    return await service.get_problem_subscriptions()


@router.get("/metrics", response_model=UsageMetrics)
async def get_usage_metrics(
    admin: AdminUser = Depends(require_permission("read")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_usage_metrics()


@router.get("/paypal-plans")
async def get_paypal_plans(
    admin: AdminUser = Depends(require_permission("read")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return {"plans": await service.get_paypal_plans()}


@router.get("/paypal-plans/{plan_id}")
async def get_paypal_plan(
    plan_id: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_paypal_plan(plan_id)


@router.get("/{subscription_id}", response_model=SubscriptionView)
async def get_subscription(
    subscription_id: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_subscription(subscription_id)


@router.get("/{subscription_id}/transactions")
async def get_subscription_transactions(
    subscription_id: str,
    days: int = Query(30, ge=1, le=365),
    admin: AdminUser = Depends(require_permission("read")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_transactions(subscription_id, days)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionActionResult)
async def cancel_subscription(
    subscription_id: str,
    body: ReasonRequest,
    admin: AdminUser = Depends(require_permission("billing")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.change_status(subscription_id, "cancel", body.reason, admin)


@router.post("/{subscription_id}/suspend", response_model=SubscriptionActionResult)
async def suspend_subscription(
    subscription_id: str,
    body: ReasonRequest,
    admin: AdminUser = Depends(require_permission("billing")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.change_status(subscription_id, "suspend", body.reason, admin)


@router.post("/{subscription_id}/activate", response_model=SubscriptionActionResult)
async def activate_subscription(
    subscription_id: str,
    body: ReasonRequest,
    admin: AdminUser = Depends(require_permission("billing")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.change_status(subscription_id, "activate", body.reason, admin)


@router.post("/{subscription_id}/revise", response_model=SubscriptionActionResult)
async def revise_subscription(
    subscription_id: str,
    body: ReviseRequest,
    admin: AdminUser = Depends(require_permission("billing")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Change the plan; the response carries the subscriber approval URL"""
    return await service.revise_subscription(subscription_id, body.planName, admin)


@router.post("/{subscription_id}/retry-payment", response_model=SubscriptionActionResult)
async def retry_failed_payment(
    subscription_id: str,
    admin: AdminUser = Depends(require_permission("billing")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.retry_failed_payment(subscription_id, admin)


# ============================================================================
# WEBHOOK EVENTS (polling)
# ============================================================================


@webhooks_router.get("/events")
async def get_webhook_events(
    page_size: int = Query(10, ge=1, le=300),
    admin: AdminUser = Depends(require_permission("read")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_webhook_events(page_size)


@webhooks_router.get("/events/{event_id}")
async def get_webhook_event(
    event_id: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.get_webhook_event(event_id)


@webhooks_router.post("/verify-signature", response_model=WebhookSignatureResult)
async def verify_webhook_signature(
    body: WebhookSignatureRequest,
    admin: AdminUser = Depends(require_permission("billing")),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Check the signature of a delivered event against PayPal"""
    return await service.verify_webhook_signature(body.headers, body.event)
