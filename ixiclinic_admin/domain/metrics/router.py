"""Metrics router - Dashboard metrics and system alerts"""

from fastapi import APIRouter, Depends

from ...auth import AdminUser, require_permission
from ...document_store import DocumentStore, get_store
from ...schemas import SystemAlert
from .schemas import AdminMetrics, AlertsResponse, QuickStats, SystemDataResponse
from .service import MetricsService

router = APIRouter(prefix="/metrics", tags=["Metrics"])


def get_metrics_service(store: DocumentStore = Depends(get_store)) -> MetricsService:
    """Dependency injection for MetricsService"""
    return MetricsService(store)


@router.get("", response_model=AdminMetrics)
async def get_admin_metrics(
    admin: AdminUser = Depends(require_permission("read")),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.get_admin_metrics()


@router.get("/quick-stats", response_model=QuickStats)
async def get_quick_stats(
    admin: AdminUser = Depends(require_permission("read")),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.get_quick_stats()


@router.get("/alerts", response_model=AlertsResponse)
async def get_system_alerts(
    admin: AdminUser = Depends(require_permission("read")),
    service: MetricsService = Depends(get_metrics_service),
):
    """Unresolved system alerts"""
    return AlertsResponse(items=service.get_system_alerts())


@router.post("/alerts/{alert_id}/resolve", response_model=SystemAlert)
async def resolve_alert(
    alert_id: str,
    admin: AdminUser = Depends(require_permission("write")),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.resolve_alert(alert_id, admin)


@router.get("/system-data", response_model=SystemDataResponse)
async def get_system_data(
    admin: AdminUser = Depends(require_permission("read")),
    service: MetricsService = Depends(get_metrics_service),
):
    return service.load_all_system_data()
