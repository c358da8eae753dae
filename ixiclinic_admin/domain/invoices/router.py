"""Invoices router - Cross-account invoice listings"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import AdminUser, require_permission
from ...document_store import DocumentStore, get_store
from .schemas import InvoiceListResponse
from .service import InvoiceService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(store: DocumentStore = Depends(get_store)) -> InvoiceService:
    """Dependency injection for InvoiceService"""
    return InvoiceService(store)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    account_id: Optional[str] = Query(None),
    amount: Optional[str] = Query(None, pattern="^(low|medium|high)$", description="low < 100, medium 100-500, high > 500"),
    sort_by: Optional[str] = Query(None),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1),
    page_size: int = Query(10, ge=1, le=100),
    admin: AdminUser = Depends(require_permission("read")),
    service: InvoiceService = Depends(get_invoice_service),
):
    """All invoices with paid and pending totals"""
    return service.list_invoices(search, status, account_id, amount, sort_by, sort_dir, page, page_size)
