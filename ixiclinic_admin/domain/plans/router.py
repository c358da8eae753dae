"""Plans router - FastAPI endpoints for the plans catalogue and price reconciliation"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ...auth import AdminUser, require_permission
from ...document_store import DocumentStore, get_store
from ...schemas import Plan
from ..billing.paypal_service import PayPalService, get_paypal_service
from .schemas import (
    ApplyRequest,
    ApplyResult,
    CheckResult,
    PlanCreate,
    PlanMappingRequest,
    PlanPriceResponse,
    PlansResponse,
    PlanUpdate,
    PricingSync,
    SyncResult,
    ValidationResult,
)
from .service import PlanService
from .store import PlanNotFoundError, PlansStore, get_plans_store
from .sync import PricingSyncService, format_price_difference

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["Plans"])


def get_plan_service(
    store: PlansStore = Depends(get_plans_store),
    documents: DocumentStore = Depends(get_store),
) -> PlanService:
    """Dependency injection for PlanService"""
    return PlanService(store, documents)


def get_pricing_sync_service(
    store: PlansStore = Depends(get_plans_store),
    paypal: PayPalService = Depends(get_paypal_service),
    documents: DocumentStore = Depends(get_store),
) -> PricingSyncService:
    """Dependency injection for PricingSyncService"""
    return PricingSyncService(store, paypal, documents)


def _require_paypal(paypal: PayPalService) -> None:
    if not paypal.is_available():
        raise HTTPException(status_code=503, detail="PayPal is not configured")


# ============================================================================
# PRICE RECONCILIATION
# ============================================================================


@router.get("/sync/status", response_model=PricingSync)
async def get_sync_status(
    admin: AdminUser = Depends(require_permission("read")),
    store: PlansStore = Depends(get_plans_store),
):
    """Last reconciliation status"""
    return store.pricing_sync


@router.post("/sync/paypal", response_model=SyncResult)
async def sync_from_paypal(
    admin: AdminUser = Depends(require_permission("billing")),
    service: PricingSyncService = Depends(get_pricing_sync_service),
    paypal: PayPalService = Depends(get_paypal_service),
):
    """Compare mapped plans with PayPal prices; nothing is changed"""
    _require_paypal(paypal)
    result = await service.sync_from_paypal()
    for diff in result.differences:
        logger.info(f"💲 {format_price_difference(diff)}")
    return result


@router.post("/sync/check", response_model=CheckResult)
async def check_against_paypal(
    admin: AdminUser = Depends(require_permission("billing")),
    service: PricingSyncService = Depends(get_pricing_sync_service),
    paypal: PayPalService = Depends(get_paypal_service),
):
    """Name-based comparison with PayPal plans; mismatches are reported only"""
    _require_paypal(paypal)
    return await service.check_against_paypal()


@router.post("/sync/apply", response_model=ApplyResult)
async def apply_differences(
    body: ApplyRequest,
    admin: AdminUser = Depends(require_permission("billing")),
    service: PricingSyncService = Depends(get_pricing_sync_service),
):
    """Apply reviewed price differences (local or remote)"""
    logger.info(f"🛠️ {admin.email} applying {len(body.differences)} price differences")
    return await service.apply_differences(body.differences)


@router.get("/sync/validate", response_model=ValidationResult)
async def validate_sync(
    admin: AdminUser = Depends(require_permission("read")),
    service: PricingSyncService = Depends(get_pricing_sync_service),
    paypal: PayPalService = Depends(get_paypal_service),
):
    """Check mapping coverage and price agreement"""
    _require_paypal(paypal)
    return await service.validate_sync()


@router.put("/mapping/{name}")
async def setup_plan_mapping(
    name: str,
    body: PlanMappingRequest,
    admin: AdminUser = Depends(require_permission("billing")),
    service: PricingSyncService = Depends(get_pricing_sync_service),
):
    """Map a local plan to a PayPal plan ID"""
    try:
        service.setup_plan_mapping(name, body.paypalPlanId)
    except PlanNotFoundError as e:
        raise HTTPException(status_code=404, detail="Plan not found") from e
    return {"name": name, "paypalPlanId": body.paypalPlanId}


@router.post("/paypal/{paypal_plan_id}/{action}")
async def set_paypal_plan_status(
    paypal_plan_id: str,
    action: Literal["activate", "deactivate"],
    admin: AdminUser = Depends(require_permission("billing")),
    paypal: PayPalService = Depends(get_paypal_service),
):
    """Activate or deactivate a PayPal billing plan"""
    _require_paypal(paypal)
    if action == "activate":
        await paypal.activate_plan(paypal_plan_id)
    else:
        await paypal.deactivate_plan(paypal_plan_id)
    logger.info(f"🔁 {admin.email} set PayPal plan {paypal_plan_id} to {action}")
    return {"paypalPlanId": paypal_plan_id, "status": "ACTIVE" if action == "activate" else "INACTIVE"}


# ============================================================================
# CATALOGUE
# ============================================================================


@router.get("", response_model=PlansResponse)
async def list_plans(
    type: Optional[str] = Query(None),
    tier: Optional[str] = Query(None),
    billing: Optional[str] = Query(None),
    admin: AdminUser = Depends(require_permission("read")),
    service: PlanService = Depends(get_plan_service),
):
    return service.list_plans(type, tier, billing)


@router.post("", response_model=Plan, status_code=201)
async def create_plan(
    body: PlanCreate,
    admin: AdminUser = Depends(require_permission("write")),
    service: PlanService = Depends(get_plan_service),
):
    return service.create_plan(body)


@router.get("/{name}/price", response_model=PlanPriceResponse)
async def calculate_price(
    name: str,
    user_count: Optional[int] = Query(None, ge=1),
    admin: AdminUser = Depends(require_permission("read")),
    service: PlanService = Depends(get_plan_service),
):
    """Plan price with the volume discount for `user_count` users"""
    return service.calculate_price(name, user_count)


@router.get("/{name}", response_model=Plan)
async def get_plan(
    name: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: PlanService = Depends(get_plan_service),
):
    return service.get_plan(name)


@router.patch("/{name}", response_model=Plan)
async def update_plan(
    name: str,
    body: PlanUpdate,
    admin: AdminUser = Depends(require_permission("write")),
    service: PlanService = Depends(get_plan_service),
):
    return service.update_plan(name, body)


@router.delete("/{name}")
async def delete_plan(
    name: str,
    admin: AdminUser = Depends(require_permission("delete")),
    service: PlanService = Depends(get_plan_service),
):
    return service.delete_plan(name)
