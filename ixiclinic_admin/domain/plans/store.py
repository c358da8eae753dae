"""
Process-wide plans store.

Holds the plan catalogue, the local -> PayPal plan-ID mapping, the pricing
configuration and the last reconciliation status. It is built once at import
from the base catalogue and the environment, then replaced by the persisted
copy (document `admin_settings/plans_store`) during application startup.
"""

import copy
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from ... import config
from ...document_store import DocumentStore
from ...schemas import Plan
from .pricing import BASE_PLANS, DEFAULT_PRICING_CONFIG, expand_plan_configs, volume_discount
from .schemas import PricingSync

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "admin_settings"
SETTINGS_DOCUMENT = "plans_store"


class PlanNotFoundError(KeyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self):
        return f"Plan not found: {self.name}"


class PlansStore:
    def __init__(
        self,
        plans: Optional[list[Plan]] = None,
        paypal_plan_mapping: Optional[dict[str, str]] = None,
        pricing_config: Optional[dict] = None,
    ):
        self.plans: list[Plan] = plans if plans is not None else expand_plan_configs(BASE_PLANS)
        if paypal_plan_mapping is None:
            paypal_plan_mapping = {k: v for k, v in config.PAYPAL_PLAN_MAPPING.items() if v}
        self.paypal_plan_mapping: dict[str, str] = dict(paypal_plan_mapping)
        self.pricing_config: dict = copy.deepcopy(pricing_config or DEFAULT_PRICING_CONFIG)
        self.pricing_sync = PricingSync()

    # ===== Queries =====

    def get_plan(self, name: str) -> Optional[Plan]:
        return next((plan for plan in self.plans if plan.name == name), None)

    def require_plan(self, name: str) -> Plan:
        plan = self.get_plan(name)
        if plan is None:
            raise PlanNotFoundError(name)
        return plan

    def get_plans_by_type(self, plan_type: str) -> list[Plan]:
        return [plan for plan in self.plans if plan.type == plan_type]

    def get_plans_by_tier(self, tier: str) -> list[Plan]:
        return [plan for plan in self.plans if plan.tier == tier]

    def get_paypal_plan_id(self, local_plan_name: str) -> Optional[str]:
        return self.paypal_plan_mapping.get(local_plan_name) or None

    def get_local_plan_name(self, paypal_plan_id: str) -> Optional[str]:
        return next(
            (local for local, remote in self.paypal_plan_mapping.items() if remote == paypal_plan_id),
            None,
        )

    def calculate_price(self, name: str, billing_cycle: Optional[str] = None, user_count: Optional[int] = None) -> float:
        """
        Price of a plan, with the volume discount applied for multi-user
        purchases. Unknown plans price at 0. The billing cycle is already
        baked into the plan's price.
        """
        plan = self.get_plan(name)
        if plan is None:
            return 0

        price = plan.price
        if user_count and user_count > 1:
            discount = volume_discount(user_count, self.pricing_config["discountRules"]["volume"])
            price = price * (1 - discount / 100)
        return round(price, 2)

    # ===== Mutations =====

    def create_plan(self, data: dict) -> Plan:
        name = data.get("name") or f"custom-{int(time.time() * 1000)}"
        if self.get_plan(name):
            raise ValueError(f"Plan {name} already exists")
        plan = Plan(**{**data, "name": name})
        self.plans.append(plan)
        logger.info(f"🆕 Plan created: {name}")
        return plan

    def update_plan(self, name: str, updates: dict) -> Plan:
        plan = self.require_plan(name)
        changes = {k: v for k, v in updates.items() if k != "name"}
        updated = Plan.model_validate({**plan.model_dump(), **changes})
        self.plans = [updated if p.name == name else p for p in self.plans]
        return updated

    def update_plan_pricing(self, name: str, new_price: float) -> Plan:
        plan = self.update_plan(name, {"price": round(float(new_price), 2)})
        logger.info(f"💲 Local price for {name} set to {plan.price}")
        return plan

    def delete_plan(self, name: str) -> None:
        self.require_plan(name)
        self.plans = [plan for plan in self.plans if plan.name != name]
        logger.info(f"🗑️ Plan deleted: {name}")

    def set_paypal_plan_mapping(self, local_plan_name: str, paypal_plan_id: str) -> None:
        self.paypal_plan_mapping[local_plan_name] = paypal_plan_id

    def set_pricing_sync(self, **fields) -> PricingSync:
        self.pricing_sync = self.pricing_sync.model_copy(update=fields)
        return self.pricing_sync

    def mark_synced(self, source: str, status: str) -> PricingSync:
        return self.set_pricing_sync(lastSync=datetime.now(timezone.utc), source=source, status=status)

    # ===== Persistence =====

    def to_dict(self) -> dict:
        return {
            "plans": [plan.model_dump(mode="json") for plan in self.plans],
            "paypalPlanMapping": dict(self.paypal_plan_mapping),
            "pricingConfig": copy.deepcopy(self.pricing_config),
            "pricingSync": self.pricing_sync.model_dump(mode="json"),
        }

    def save(self, documents: DocumentStore) -> None:
        documents.collection(SETTINGS_COLLECTION).document(SETTINGS_DOCUMENT).set(self.to_dict())
        logger.debug("💾 Plans store persisted")

    def load(self, documents: DocumentStore) -> bool:
        """Replace the in-memory state with the persisted copy, if there is one"""
        snapshot = documents.collection(SETTINGS_COLLECTION).document(SETTINGS_DOCUMENT).get()
        if not snapshot.exists:
            return False

        data = snapshot.to_dict()
        if data.get("plans"):
            self.plans = [Plan.model_validate(plan) for plan in data["plans"]]
        # Environment mapping is the base; mappings set from the dashboard override it
        self.paypal_plan_mapping = {
            **{k: v for k, v in config.PAYPAL_PLAN_MAPPING.items() if v},
            **(data.get("paypalPlanMapping") or {}),
        }
        if data.get("pricingConfig"):
            self.pricing_config = data["pricingConfig"]
        if data.get("pricingSync"):
            self.pricing_sync = PricingSync.model_validate(data["pricingSync"])
        logger.info(f"✅ Plans store loaded: {len(self.plans)} plans")
        return True


# Global instance
plans_store = PlansStore()


def get_plans_store() -> PlansStore:
    """Dependency injection for the plans store"""
    return plans_store
