"""Plan service - Business logic for the plans catalogue"""

import logging
from typing import Optional

from fastapi import HTTPException

from ...document_store import DocumentStore
from ...schemas import Plan
from .schemas import PlanCreate, PlanPriceResponse, PlansResponse, PlanUpdate
from .store import PlanNotFoundError, PlansStore

logger = logging.getLogger(__name__)


class PlanService:
    """Service layer for plan CRUD; every mutation is persisted"""

    def __init__(self, store: PlansStore, documents: DocumentStore):
        self.store = store
        self.documents = documents

    def list_plans(
        self,
        plan_type: Optional[str] = None,
        tier: Optional[str] = None,
        billing: Optional[str] = None,
    ) -> PlansResponse:
        plans = self.store.plans
        if plan_type:
            plans = self.store.get_plans_by_type(plan_type)
        if tier:
            plans = [plan for plan in plans if plan.tier == tier]
        if billing:
            plans = [plan for plan in plans if plan.billing == billing]

        return PlansResponse(
            plans=plans,
            paypalPlanMapping=self.store.paypal_plan_mapping,
            pricingConfig=self.store.pricing_config,
            pricingSync=self.store.pricing_sync,
        )

    def get_plan(self, name: str) -> Plan:
        plan = self.store.get_plan(name)
        if not plan:
            raise HTTPException(status_code=404, detail="Plan not found")
        return plan

    def create_plan(self, data: PlanCreate) -> Plan:
        try:
            plan = self.store.create_plan(data.model_dump(exclude_none=True))
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        self.store.save(self.documents)
        return plan

    def update_plan(self, name: str, data: PlanUpdate) -> Plan:
        try:
            plan = self.store.update_plan(name, data.model_dump(exclude_unset=True))
        except PlanNotFoundError as e:
            raise HTTPException(status_code=404, detail="Plan not found") from e
        self.store.save(self.documents)
        return plan

    def delete_plan(self, name: str) -> dict:
        try:
            self.store.delete_plan(name)
        except PlanNotFoundError as e:
            raise HTTPException(status_code=404, detail="Plan not found") from e
        self.store.save(self.documents)
        return {"message": "Plan deleted", "name": name}

    def calculate_price(self, name: str, user_count: Optional[int] = None) -> PlanPriceResponse:
        plan = self.get_plan(name)
        return PlanPriceResponse(
            name=plan.name,
            billing=plan.billing,
            userCount=user_count,
            basePrice=plan.price,
            price=self.store.calculate_price(name, plan.billing, user_count),
            currency=self.store.pricing_config.get("currency", "USD"),
        )
