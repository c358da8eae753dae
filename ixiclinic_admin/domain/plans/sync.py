"""
Price reconciliation between the local plans store and PayPal.

Two comparisons exist:
- `sync_from_paypal` follows the explicit plan-ID mapping and reports every
  mapped plan whose price differs; PayPal is treated as the source of truth.
- `check_against_paypal` matches plans by name when no mapping is configured
  and only reports mismatches.

Neither corrects anything; `apply_differences` does, when an admin asks.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from ...document_store import DocumentStore
from ..billing.paypal_service import PayPalAPIError, PayPalService, plan_price
from .schemas import (
    ApplyResult,
    CheckResult,
    PricingDifference,
    SyncResult,
    ValidationResult,
)
from .store import PlansStore

logger = logging.getLogger(__name__)

PRICE_TOLERANCE = 0.01


def format_price_difference(diff: PricingDifference) -> str:
    direction = "↓" if diff.localPrice > diff.remotePrice else "↑"
    amount = abs(diff.localPrice - diff.remotePrice)
    return f"{diff.planName}: {direction} ${amount:.2f}"


class PricingSyncService:
    """Service for plan price reconciliation"""

    def __init__(self, store: PlansStore, paypal: PayPalService, documents: Optional[DocumentStore] = None):
        self.store = store
        self.paypal = paypal
        self.documents = documents

    def _persist(self) -> None:
        if self.documents is not None:
            self.store.save(self.documents)

    async def _fetch_paypal_plans(self) -> list[dict]:
        response = await self.paypal.get_plans()
        return response.get("plans") or []

    # ===== Mapping based sync =====

    async def sync_from_paypal(self) -> SyncResult:
        errors: list[str] = []
        differences: list[PricingDifference] = []
        logger.info("🔄 Starting price sync from PayPal...")

        try:
            paypal_plans = await self._fetch_paypal_plans()
        except PayPalAPIError as e:
            logger.error(f"❌ Price sync from PayPal failed: {e}")
            self.store.mark_synced("paypal", "error")
            self._persist()
            return SyncResult(success=False, errors=[f"Sync error: {e}"])

        if not paypal_plans:
            self.store.mark_synced("paypal", "error")
            self._persist()
            return SyncResult(success=False, errors=["No plans found in PayPal"])

        for paypal_plan in paypal_plans:
            local_plan_id = self.store.get_local_plan_name(paypal_plan.get("id"))
            if not local_plan_id:
                logger.warning(f"⚠️ PayPal plan {paypal_plan.get('id')} has no local mapping")
                continue

            local_plan = self.store.get_plan(local_plan_id)
            if local_plan is None:
                errors.append(f"Local plan {local_plan_id} not found")
                continue

            remote_price = plan_price(paypal_plan)
            if remote_price is None:
                errors.append(f"Could not read PayPal price for {paypal_plan.get('name')}")
                continue

            if abs(remote_price - local_plan.price) > PRICE_TOLERANCE:
                differences.append(
                    PricingDifference(
                        planId=local_plan_id,
                        planName=local_plan.name,
                        localPrice=local_plan.price,
                        remotePrice=remote_price,
                        source="paypal",
                        action="update_local",
                    )
                )

        self.store.mark_synced("paypal", "out_of_sync" if differences else "synced")
        self._persist()
        logger.info(f"✅ Sync finished. {len(differences)} differences found")
        return SyncResult(
            success=True,
            differences=differences,
            errors=errors,
            syncScore=self.calculate_sync_score(differences),
        )

    # ===== Name based check =====

    async def check_against_paypal(self) -> CheckResult:
        """Match every local plan to a PayPal plan by name and report price mismatches"""
        try:
            paypal_plans = await self._fetch_paypal_plans()
        except PayPalAPIError as e:
            logger.error(f"❌ Could not check plans against PayPal: {e}")
            return CheckResult(success=False, errors=[str(e)])

        mismatches: list[PricingDifference] = []
        warnings: list[str] = []
        errors: list[str] = []

        for plan in self.store.plans:
            display_name = (plan.description or plan.name).lower()
            billing = (plan.billing or "").lower()
            match = next(
                (
                    p
                    for p in paypal_plans
                    if display_name in (p.get("name") or "").lower() and billing in (p.get("name") or "").lower()
                ),
                None,
            )
            if match is None:
                errors.append(f"Plan not found in PayPal: {plan.name}")
                continue

            remote_price = plan_price(match) or 0
            if abs(remote_price - plan.price) > PRICE_TOLERANCE:
                diff = PricingDifference(
                    planId=plan.name,
                    planName=plan.name,
                    localPrice=plan.price,
                    remotePrice=remote_price,
                    source="paypal",
                    action="conflict",
                )
                mismatches.append(diff)
                warnings.append(f"Price out of sync: {format_price_difference(diff)}")
                logger.warning(f"⚠️ Price out of sync for {plan.name}: local={plan.price} paypal={remote_price}")

        return CheckResult(success=not errors, mismatches=mismatches, warnings=warnings, errors=errors)

    # ===== Corrections =====

    async def apply_differences(self, differences: list[PricingDifference]) -> ApplyResult:
        errors: list[str] = []
        applied = 0

        for diff in differences:
            try:
                if diff.action == "update_local":
                    self.store.update_plan_pricing(diff.planId, diff.remotePrice)
                    applied += 1
                    logger.info(f"✅ Price updated for {diff.planName}: {diff.localPrice} → {diff.remotePrice}")
                elif diff.action == "update_remote":
                    paypal_plan_id = self.store.get_paypal_plan_id(diff.planId)
                    if not paypal_plan_id:
                        errors.append(f"Plan {diff.planName} has no PayPal mapping")
                        continue
                    await self.paypal.update_plan_pricing(
                        paypal_plan_id, f"{diff.localPrice:.2f}", self.store.pricing_config.get("currency", "USD")
                    )
                    applied += 1
                    logger.info(f"✅ PayPal price updated for {diff.planName}")
                else:
                    errors.append(f"Conflict for {diff.planName} must be resolved manually")
            except (KeyError, PayPalAPIError) as e:
                errors.append(f"Error applying difference for {diff.planName}: {e}")

        if applied:
            self._persist()
        return ApplyResult(success=not errors, applied=applied, errors=errors)

    # ===== Validation =====

    async def validate_sync(self) -> ValidationResult:
        issues = [
            f"Plan {plan.name} has no PayPal mapping"
            for plan in self.store.plans
            if not self.store.get_paypal_plan_id(plan.name)
        ]

        sync_result = await self.sync_from_paypal()
        if not sync_result.success:
            issues.extend(sync_result.errors)
        elif sync_result.differences:
            issues.append(f"{len(sync_result.differences)} price differences found")

        return ValidationResult(
            isValid=not issues,
            issues=issues,
            lastValidation=datetime.now(timezone.utc),
        )

    def setup_plan_mapping(self, local_plan_id: str, paypal_plan_id: str) -> bool:
        self.store.require_plan(local_plan_id)
        self.store.set_paypal_plan_mapping(local_plan_id, paypal_plan_id)
        self._persist()
        logger.info(f"✅ Mapping configured: {local_plan_id} → {paypal_plan_id}")
        return True

    def calculate_sync_score(self, differences: list[PricingDifference]) -> int:
        total = len(self.store.plans)
        if total == 0:
            return 100
        return round((total - len(differences)) / total * 100)
