"""Invoice service - Cross-account invoice listings and totals"""

import logging
from collections import Counter
from typing import Literal, Optional

from ...document_store import DocumentStore
from ...schemas import Invoice, account_matches
from ...shared.table import sort_and_paginate
from ..accounts.repository import AccountRepository
from .schemas import InvoiceListResponse, InvoiceTotals, InvoiceWithAccount

logger = logging.getLogger(__name__)

AmountRange = Literal["low", "medium", "high"]

# Invoices still waiting for payment
PENDING_STATUSES = ("sent", "overdue")


def in_amount_range(amount: float, amount_range: AmountRange) -> bool:
    """low: < 100, medium: 100-500 inclusive, high: > 500"""
    if amount_range == "low":
        return amount < 100
    if amount_range == "medium":
        return 100 <= amount <= 500
    return amount > 500


class InvoiceService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def get_all_invoices_with_account_info(self) -> list[InvoiceWithAccount]:
        accounts = AccountRepository.get_account_briefs(self.store)
        return [
            InvoiceWithAccount.model_validate({**i.model_dump(), "accountInfo": accounts.get(i.accountId)})
            for i in AccountRepository.get_all_records(self.store, "invoices", Invoice, order_by="issueDate")
        ]

    @staticmethod
    def filter_invoices(
        invoices: list[InvoiceWithAccount],
        search: Optional[str] = None,
        status: Optional[str] = None,
        account_id: Optional[str] = None,
        amount_range: Optional[AmountRange] = None,
    ) -> list[InvoiceWithAccount]:
        if search:
            term = search.lower()
            invoices = [
                i
                for i in invoices
                if term in (i.invoiceNumber or "").lower()
                or term in (i.description or "").lower()
                or term in (i.patientId or "").lower()
                or account_matches(i.accountInfo, term)
            ]
        if status:
            invoices = [i for i in invoices if i.status == status]
        if account_id:
            invoices = [i for i in invoices if i.accountId == account_id]
        if amount_range:
            invoices = [i for i in invoices if in_amount_range(i.amount, amount_range)]
        return invoices

    @staticmethod
    def calculate_totals(invoices: list[InvoiceWithAccount], filtered: int) -> InvoiceTotals:
        return InvoiceTotals(
            count=len(invoices),
            filtered=filtered,
            totalPaid=round(sum(i.amount for i in invoices if i.status == "paid"), 2),
            totalPending=round(sum(i.amount for i in invoices if i.status in PENDING_STATUSES), 2),
            byStatus=dict(Counter(i.status or "unknown" for i in invoices)),
        )

    def list_invoices(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        account_id: Optional[str] = None,
        amount_range: Optional[AmountRange] = None,
        sort_by: Optional[str] = None,
        sort_dir: str = "asc",
        page: int = 1,
        page_size: int = 10,
    ) -> InvoiceListResponse:
        invoices = self.get_all_invoices_with_account_info()
        filtered = self.filter_invoices(invoices, search, status, account_id, amount_range)

        items, meta = sort_and_paginate(filtered, sort_by, sort_dir, page, page_size)
        return InvoiceListResponse(
            items=items,
            pagination=meta,
            totals=self.calculate_totals(invoices, len(filtered)),
        )
