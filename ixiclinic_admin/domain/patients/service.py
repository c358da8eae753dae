"""Patient service - Cross-account patient listings and export"""

import csv
import logging
from datetime import datetime, timezone
from io import StringIO
from typing import Optional

from fastapi.responses import StreamingResponse

from ...document_store import DocumentStore, comparable
from ...schemas import Patient, account_label, account_matches
from ...shared.table import sort_and_paginate
from ..accounts.repository import AccountRepository
from .schemas import PatientListResponse, PatientStats, PatientWithAccount

logger = logging.getLogger(__name__)

CSV_HEADER = ["Nombre", "Email", "Teléfono", "Cuenta", "Fecha de Registro"]


class PatientService:
    """Service layer for patient listings"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_all_patients_with_account_info(self) -> list[PatientWithAccount]:
        accounts = AccountRepository.get_account_briefs(self.store)
        patients = AccountRepository.get_all_records(self.store, "patients", Patient)
        return [
            PatientWithAccount.model_validate({**p.model_dump(), "accountInfo": accounts.get(p.accountId)})
            for p in patients
        ]

    @staticmethod
    def filter_patients(
        patients: list[PatientWithAccount],
        search: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> list[PatientWithAccount]:
        if search and search.strip():
            term = search.strip().lower()
            patients = [
                p
                for p in patients
                if term in p.full_name.lower()
                or term in (p.email or "").lower()
                or term in (p.phone or "")
                or account_matches(p.accountInfo, term)
            ]
        if account_id:
            patients = [p for p in patients if p.accountId == account_id]
        return patients

    def list_patients(
        self,
        search: Optional[str] = None,
        account_id: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_dir: str = "asc",
        page: int = 1,
        page_size: int = 10,
    ) -> PatientListResponse:
        patients = self.get_all_patients_with_account_info()
        filtered = self.filter_patients(patients, search, account_id)

        month_start = datetime.now(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        stats = PatientStats(
            total=len(patients),
            accountsWithPatients=len({p.accountId for p in patients if p.accountId}),
            thisMonth=sum(1 for p in patients if p.createdAt and comparable(p.createdAt) >= month_start),
            filtered=len(filtered),
        )

        items, meta = sort_and_paginate(filtered, sort_by, sort_dir, page, page_size)
        return PatientListResponse(items=items, pagination=meta, stats=stats)

    def export_patients_csv(
        self,
        search: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> StreamingResponse:
        """Export the filtered patients as CSV"""
        patients = self.filter_patients(self.get_all_patients_with_account_info(), search, account_id)

        output = StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_ALL)
        writer.writerow(CSV_HEADER)
        for patient in patients:
            writer.writerow(
                [
                    patient.full_name,
                    patient.email or "",
                    patient.phone or "",
                    account_label(patient.accountInfo),
                    patient.createdAt.strftime("%Y-%m-%d") if patient.createdAt else "N/A",
                ]
            )

        output.seek(0)
        filename = f"pacientes_{datetime.now().strftime('%Y-%m-%d')}.csv"
        logger.info(f"✅ CSV export successful: {filename} ({len(patients)} patients)")

        return StreamingResponse(
            iter([output.getvalue()]),
            media_type="text/csv; charset=utf-8",
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Cache-Control": "no-cache",
            },
        )
