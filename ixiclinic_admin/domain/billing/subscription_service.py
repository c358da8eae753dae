"""Subscription service - PayPal subscription administration"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException

from ...auth import AdminUser
from ...config import PAYPAL_WEBHOOK_ID
from ...document_store import DocumentNotFoundError, DocumentStore
from ..accounts.repository import AccountRepository
from ..plans.store import PlansStore
from .paypal_service import PayPalService, has_payment_issues
from .schemas import (
    SubscriptionActionResult,
    SubscriptionCounts,
    SubscriptionListResponse,
    SubscriptionView,
    UsageMetrics,
    WebhookSignatureResult,
)

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "ACTIVE": "Activa",
    "SUSPENDED": "Suspendida",
    "CANCELLED": "Cancelada",
    "EXPIRED": "Expirada",
    "APPROVAL_PENDING": "Pendiente de Aprobación",
    "APPROVED": "Aprobada",
}

# PayPal subscription status -> account billingInfo.subscriptionStatus
ACCOUNT_STATUS = {
    "ACTIVE": "active",
    "SUSPENDED": "inactive",
    "CANCELLED": "cancelled",
    "EXPIRED": "cancelled",
    "APPROVAL_PENDING": "pending",
}

# Status PayPal reports after each lifecycle action
ACTION_STATUS = {"cancel": "CANCELLED", "suspend": "SUSPENDED", "activate": "ACTIVE"}

TRANSACTION_WINDOW_DAYS = 30


def get_status_label(status: Optional[str]) -> str:
    return STATUS_LABELS.get(status or "", status or "")


def get_account_status(paypal_status: Optional[str]) -> str:
    return ACCOUNT_STATUS.get(paypal_status or "", "inactive")


def outstanding_balance(subscription: dict) -> tuple[float, str]:
    balance = (subscription.get("billing_info") or {}).get("outstanding_balance") or {}
    return float(balance.get("value") or 0), balance.get("currency_code") or "USD"


def is_problem_subscription(subscription: dict) -> bool:
    """Suspended, or with payment issues (failed payments or a positive balance owed)"""
    return subscription.get("status") == "SUSPENDED" or has_payment_issues(subscription)


def paypal_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


class SubscriptionService:
    """Service for PayPal subscription management"""

    def __init__(self, paypal: PayPalService, store: DocumentStore, plans: PlansStore):
        self.paypal = paypal
        self.store = store
        self.plans = plans

    def _ensure_available(self) -> None:
        if not self.paypal.is_available():
            raise HTTPException(status_code=503, detail="PayPal is not configured")

    def _to_view(self, subscription: dict, accounts_by_sub: Optional[dict] = None) -> SubscriptionView:
        status = subscription.get("status")
        if accounts_by_sub is not None:
            account_id = accounts_by_sub.get(subscription.get("id"))
        else:
            account = AccountRepository.find_by_subscription_id(self.store, subscription.get("id"))
            account_id = account.id if account else None

        return SubscriptionView(
            subscription=subscription,
            statusLabel=get_status_label(status),
            localStatus=get_account_status(status),
            hasProblems=is_problem_subscription(subscription),
            accountId=account_id,
            planName=self.plans.get_local_plan_name(subscription.get("plan_id")),
        )

    def _account_ids_by_subscription(self) -> dict[str, str]:
        return {
            account.billingInfo.paypalSubscriptionId: account_id
            for account_id, account in AccountRepository.get_accounts_by_id(self.store).items()
            if account.billingInfo.paypalSubscriptionId
        }

    async def _fetch_subscriptions(self, status: Optional[str] = None) -> list[dict]:
        self._ensure_available()
        response = await self.paypal.get_subscriptions(status)
        return response.get("subscriptions") or []

    # ===== Reads =====

    async def list_subscriptions(
        self, search: Optional[str] = None, status: Optional[str] = None
    ) -> SubscriptionListResponse:
        subscriptions = await self._fetch_subscriptions()
        filtered = subscriptions

        if search:
            term = search.lower()
            filtered = [
                s
                for s in filtered
                if term in ((s.get("subscriber") or {}).get("email_address") or "").lower()
                or term in (s.get("id") or "").lower()
            ]
        if status:
            filtered = [s for s in filtered if s.get("status") == status]

        accounts_by_sub = self._account_ids_by_subscription()
        return SubscriptionListResponse(
            items=[self._to_view(s, accounts_by_sub) for s in filtered],
            counts=SubscriptionCounts(
                total=len(subscriptions),
                active=sum(1 for s in subscriptions if s.get("status") == "ACTIVE"),
                problems=sum(1 for s in subscriptions if is_problem_subscription(s)),
                filtered=len(filtered),
            ),
        )

    async def get_problem_subscriptions(self) -> list[SubscriptionView]:
        accounts_by_sub = self._account_ids_by_subscription()
        return [
            self._to_view(s, accounts_by_sub)
            for s in await self._fetch_subscriptions()
            if is_problem_subscription(s)
        ]

    async def get_subscription(self, subscription_id: str) -> SubscriptionView:
        self._ensure_available()
        return self._to_view(await self.paypal.get_subscription(subscription_id))

    async def get_transactions(self, subscription_id: str, days: int = TRANSACTION_WINDOW_DAYS) -> dict:
        self._ensure_available()
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=days)
        return await self.paypal.get_subscription_transactions(
            subscription_id, paypal_timestamp(start), paypal_timestamp(end)
        )

    async def get_usage_metrics(self) -> UsageMetrics:
        """Subscriptions per plan and revenue from the last payment of active ones"""
        subscriptions = await self._fetch_subscriptions()
        plan_usage: dict[str, int] = {}
        active = 0
        revenue = 0.0

        for subscription in subscriptions:
            plan_id = subscription.get("plan_id") or "unknown"
            plan_usage[plan_id] = plan_usage.get(plan_id, 0) + 1
            if subscription.get("status") == "ACTIVE":
                active += 1
                last_payment = (subscription.get("billing_info") or {}).get("last_payment") or {}
                revenue += float((last_payment.get("amount") or {}).get("value") or 0)

        return UsageMetrics(
            planUsage=plan_usage,
            totalSubscriptions=len(subscriptions),
            activeSubscriptions=active,
            problemSubscriptions=sum(1 for s in subscriptions if is_problem_subscription(s)),
            monthlyRevenue=round(revenue, 2),
        )

    async def get_paypal_plans(self) -> list[dict]:
        """PayPal plans annotated with the local plan they map to"""
        self._ensure_available()
        response = await self.paypal.get_plans()
        return [
            {**plan, "localPlanName": self.plans.get_local_plan_name(plan.get("id"))}
            for plan in response.get("plans") or []
        ]

    async def get_paypal_plan(self, plan_id: str) -> dict:
        self._ensure_available()
        plan = await self.paypal.get_plan(plan_id)
        return {**plan, "localPlanName": self.plans.get_local_plan_name(plan_id)}

    # ===== Lifecycle =====

    def _sync_account_status(
        self, subscription_id: str, paypal_status: str, action: str, details: dict, admin: AdminUser
    ) -> Optional[str]:
        """Mirror the new PayPal status onto the linked account, if there is one"""
        account = AccountRepository.find_by_subscription_id(self.store, subscription_id)
        if account is None:
            logger.warning(f"⚠️ No account linked to subscription {subscription_id}")
            return None

        try:
            AccountRepository.update_account(
                self.store, account.id, {"billingInfo.subscriptionStatus": get_account_status(paypal_status)}
            )
        except DocumentNotFoundError:
            logger.warning(f"⚠️ Account {account.id} disappeared while syncing subscription {subscription_id}")
            return None

        AccountRepository.log_admin_action(
            self.store, action, account.id, {"subscriptionId": subscription_id, **details}, admin.uid
        )
        return account.id

    async def change_status(
        self, subscription_id: str, action: str, reason: str, admin: AdminUser
    ) -> SubscriptionActionResult:
        """Cancel, suspend or activate a subscription and update its account"""
        self._ensure_available()
        if action == "cancel":
            response = await self.paypal.cancel_subscription(subscription_id, reason)
        elif action == "suspend":
            response = await self.paypal.suspend_subscription(subscription_id, reason)
        elif action == "activate":
            response = await self.paypal.activate_subscription(subscription_id, reason)
        else:
            raise HTTPException(status_code=400, detail=f"Unknown action: {action}")

        paypal_status = ACTION_STATUS[action]
        account_id = self._sync_account_status(
            subscription_id, paypal_status, f"{action}_subscription", {"reason": reason}, admin
        )
        logger.info(f"💳 Subscription {subscription_id} {action} by {admin.email}")

        return SubscriptionActionResult(
            subscriptionId=subscription_id,
            action=action,
            localStatus=get_account_status(paypal_status),
            accountId=account_id,
            paypalResponse=response,
        )

    async def revise_subscription(
        self, subscription_id: str, plan_name: str, admin: AdminUser
    ) -> SubscriptionActionResult:
        """Move a subscription to another plan; the subscriber must approve the change"""
        self._ensure_available()
        paypal_plan_id = self.plans.get_paypal_plan_id(plan_name)
        if not paypal_plan_id:
            if self.plans.get_plan(plan_name) is not None:
                raise HTTPException(status_code=400, detail=f"Plan {plan_name} has no PayPal mapping")
            paypal_plan_id = plan_name

        response = await self.paypal.revise_subscription(subscription_id, paypal_plan_id)
        approval_url = next(
            (link.get("href") for link in response.get("links") or [] if link.get("rel") == "approve"),
            None,
        )

        account = AccountRepository.find_by_subscription_id(self.store, subscription_id)
        if account:
            AccountRepository.log_admin_action(
                self.store,
                "revise_subscription",
                account.id,
                {"subscriptionId": subscription_id, "planId": paypal_plan_id, "planName": plan_name},
                admin.uid,
            )
        logger.info(f"💳 Subscription {subscription_id} revised to {paypal_plan_id} by {admin.email}")

        return SubscriptionActionResult(
            subscriptionId=subscription_id,
            action="revise",
            accountId=account.id if account else None,
            approvalUrl=approval_url,
            paypalResponse=response,
        )

    async def retry_failed_payment(self, subscription_id: str, admin: AdminUser) -> SubscriptionActionResult:
        """Capture the outstanding balance of a subscription"""
        self._ensure_available()
        subscription = await self.paypal.get_subscription(subscription_id)
        amount, currency = outstanding_balance(subscription)
        if amount <= 0:
            raise HTTPException(status_code=400, detail="Subscription has no outstanding balance")

        response = await self.paypal.capture_outstanding_balance(
            subscription_id, f"{amount:.2f}", currency, note=f"Retry requested by {admin.email}"
        )

        account = AccountRepository.find_by_subscription_id(self.store, subscription_id)
        if account:
            AccountRepository.log_admin_action(
                self.store,
                "retry_payment",
                account.id,
                {"subscriptionId": subscription_id, "amount": amount, "currency": currency},
                admin.uid,
            )
        logger.info(f"💳 Outstanding balance {amount:.2f} {currency} captured for {subscription_id}")

        return SubscriptionActionResult(
            subscriptionId=subscription_id,
            action="retry_payment",
            accountId=account.id if account else None,
            paypalResponse=response,
        )

    # ===== Webhook events =====

    async def get_webhook_events(self, page_size: int = 10) -> dict:
        self._ensure_available()
        return await self.paypal.get_webhook_events(page_size)

    async def get_webhook_event(self, event_id: str) -> dict:
        self._ensure_available()
        return await self.paypal.get_webhook_event(event_id)

    async def verify_webhook_signature(self, headers: dict, event: dict) -> WebhookSignatureResult:
        self._ensure_available()
        if not PAYPAL_WEBHOOK_ID:
            raise HTTPException(status_code=503, detail="PAYPAL_WEBHOOK_ID is not configured")

        response = await self.paypal.verify_webhook_signature(headers, event, PAYPAL_WEBHOOK_ID)
        status = response.get("verification_status")
        return WebhookSignatureResult(verified=status == "SUCCESS", verificationStatus=status)
