"""Patients router - Cross-account patient listings"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import AdminUser, require_permission
from ...document_store import DocumentStore, get_store
from .schemas import PatientListResponse
from .service import PatientService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients", tags=["Patients"])


def get_patient_service(store: DocumentStore = Depends(get_store)) -> PatientService:
    """Dependency injection for PatientService"""
    return PatientService(store)


@router.get("", response_model=PatientListResponse)
async def list_patients(
    search: Optional[str] = Query(None),
    account_id: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1),
    page_size: int = Query(10, ge=1, le=100),
    admin: AdminUser = Depends(require_permission("read")),
    service: PatientService = Depends(get_patient_service),
):
    """All patients of all accounts, with the owning account"""
    return service.list_patients(search, account_id, sort_by, sort_dir, page, page_size)


@router.get("/export")
async def export_patients_csv(
    search: Optional[str] = Query(None),
    account_id: Optional[str] = Query(None),
    admin: AdminUser = Depends(require_permission("read")),
    service: PatientService = Depends(get_patient_service),
):
    """Export patients as CSV with optional filters"""
    logger.info(f"📊 Patient CSV export requested by {admin.email}")
    return service.export_patients_csv(search, account_id)
