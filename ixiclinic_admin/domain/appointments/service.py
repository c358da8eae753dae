"""Appointment service - Cross-account appointment listings"""

import logging
from datetime import datetime
from typing import Optional

from ...document_store import DocumentStore, comparable
from ...schemas import Appointment, account_matches
from ...shared.periods import Period, period_bounds
from ...shared.table import sort_and_paginate
from ..accounts.repository import AccountRepository
from .schemas import AppointmentListResponse, AppointmentStats, AppointmentWithAccount

logger = logging.getLogger(__name__)


class AppointmentService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def get_all_appointments_with_account_info(self) -> list[AppointmentWithAccount]:
        accounts = AccountRepository.get_account_briefs(self.store)
        return [
            AppointmentWithAccount.model_validate({**a.model_dump(), "accountInfo": accounts.get(a.accountId)})
            for a in AccountRepository.get_all_records(self.store, "appointments", Appointment, order_by="date")
        ]

    @staticmethod
    def filter_appointments(
        appointments: list[AppointmentWithAccount],
        search: Optional[str] = None,
        status: Optional[str] = None,
        account_id: Optional[str] = None,
        period: Optional[Period] = None,
        now: Optional[datetime] = None,
    ) -> list[AppointmentWithAccount]:
        if search:
            term = search.lower()
            appointments = [
                a
                for a in appointments
                if term in (a.patientId or "").lower()
                or term in (a.doctorId or "").lower()
                or account_matches(a.accountInfo, term)
            ]
        if status:
            appointments = [a for a in appointments if a.status == status]
        if account_id:
            appointments = [a for a in appointments if a.accountId == account_id]
        if period:
            start, end = period_bounds(period, now)
            appointments = [a for a in appointments if a.date and start <= comparable(a.date) < end]
        return appointments

    def list_appointments(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        account_id: Optional[str] = None,
        period: Optional[Period] = None,
        sort_by: Optional[str] = None,
        sort_dir: str = "asc",
        page: int = 1,
        page_size: int = 10,
    ) -> AppointmentListResponse:
        appointments = self.get_all_appointments_with_account_info()
        filtered = self.filter_appointments(appointments, search, status, account_id, period)

        stats = AppointmentStats(
            total=len(appointments),
            scheduled=sum(1 for a in appointments if a.status == "scheduled"),
            completed=sum(1 for a in appointments if a.status == "completed"),
            filtered=len(filtered),
        )
        items, meta = sort_and_paginate(filtered, sort_by, sort_dir, page, page_size)
        return AppointmentListResponse(items=items, pagination=meta, stats=stats)
