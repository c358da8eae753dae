"""Appointments router - Cross-account appointment listings"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import AdminUser, require_permission
from ...document_store import DocumentStore, get_store
from .schemas import AppointmentListResponse
from .service import AppointmentService

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(store: DocumentStore = Depends(get_store)) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(store)


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    account_id: Optional[str] = Query(None),
    date: Optional[str] = Query(None, pattern="^(today|week|month)$", description="today, week or month"),
    sort_by: Optional[str] = Query(None),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1),
    page_size: int = Query(10, ge=1, le=100),
    admin: AdminUser = Depends(require_permission("read")),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_appointments(search, status, account_id, date, sort_by, sort_dir, page, page_size)
