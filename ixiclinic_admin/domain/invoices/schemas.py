"""Invoice domain schemas"""

from typing import Optional

from pydantic import BaseModel

from ...schemas import AccountBrief, Invoice, PageMeta


class InvoiceWithAccount(Invoice):
    accountInfo: Optional[AccountBrief] = None


class InvoiceTotals(BaseModel):
    count: int
    filtered: int
    totalPaid: float
    totalPending: float
    byStatus: dict[str, int]


class InvoiceListResponse(BaseModel):
    items: list[InvoiceWithAccount]
    pagination: PageMeta
    totals: InvoiceTotals
