"""Metrics service - Dashboard figures computed from the document store"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException

from ...auth import AdminUser
from ...document_store import DocumentNotFoundError, DocumentStore, comparable
from ...schemas import Account, Appointment, Patient, SystemAlert, User
from ...shared.periods import period_bounds, start_of_month
from ..accounts.repository import AccountRepository
from ..plans.pricing import BILLING_CYCLES
from .schemas import (
    AccountQuickStats,
    AdminMetrics,
    AppointmentQuickStats,
    PatientQuickStats,
    QuickStats,
    SystemDataResponse,
    SystemTotals,
    UserQuickStats,
)

logger = logging.getLogger(__name__)

SYSTEM_ALERTS = "system_alerts"


def monthly_revenue(accounts: list[Account]) -> float:
    """Plan price of every active account normalised to one month"""
    total = 0.0
    for account in accounts:
        plan = account.billingInfo.plan
        if account.billingInfo.subscriptionStatus != "active" or plan is None:
            continue
        months, _ = BILLING_CYCLES.get(plan.billing or "monthly", (1, 1.0))
        total += plan.price / months
    return round(total, 2)


def count_since(records: list, field: str, since: datetime) -> int:
    return sum(1 for r in records if getattr(r, field) and comparable(getattr(r, field)) >= since)


def count_between(records: list, field: str, bounds: tuple[datetime, datetime]) -> int:
    start, end = bounds
    return sum(1 for r in records if getattr(r, field) and start <= comparable(getattr(r, field)) < end)


class MetricsService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def get_system_alerts(self) -> list[SystemAlert]:
        """Unresolved alerts, newest first"""
        snapshots = (
            self.store.collection(SYSTEM_ALERTS)
            .where("resolved", "==", False)
            .order_by("createdAt", "desc")
            .stream()
        )
        return SystemAlert.from_snapshots(snapshots)

    def resolve_alert(self, alert_id: str, admin: AdminUser) -> SystemAlert:
        ref = self.store.collection(SYSTEM_ALERTS).document(alert_id)
        try:
            ref.update({"resolved": True, "resolvedAt": datetime.now(timezone.utc), "resolvedBy": admin.uid})
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail="Alert not found") from e
        logger.info(f"🔔 Alert {alert_id} resolved by {admin.email}")
        return SystemAlert.from_snapshot(ref.get())

    def get_admin_metrics(self) -> AdminMetrics:
        accounts = AccountRepository.get_all_accounts(self.store)
        alerts = self.get_system_alerts()
        critical = [a for a in alerts if a.severity in ("critical", "error")]

        return AdminMetrics(
            totalAccounts=len(accounts),
            activeSubscriptions=sum(1 for a in accounts if a.billingInfo.subscriptionStatus == "active"),
            trialAccounts=sum(1 for a in accounts if a.billingInfo.subscriptionStatus == "trial"),
            monthlyRevenue=monthly_revenue(accounts),
            totalPatients=self.store.collection_group("patients").count(),
            totalAppointments=self.store.collection_group("appointments").count(),
            totalInvoices=self.store.collection_group("invoices").count(),
            totalPrescriptions=self.store.collection_group("prescriptions").count(),
            systemHealth="warning" if critical else "healthy",
        )

    def get_quick_stats(self, now: Optional[datetime] = None) -> QuickStats:
        """Totals plus this month / today / this week (weeks start on Sunday)"""
        now = now or datetime.now(timezone.utc)
        accounts = AccountRepository.get_all_accounts(self.store)
        patients = AccountRepository.get_all_records(self.store, "patients", Patient)
        users = AccountRepository.get_all_records(self.store, "users", User)
        appointments = AccountRepository.get_all_records(self.store, "appointments", Appointment, order_by="date")

        active = sum(1 for a in accounts if a.isActive)
        doctors = sum(1 for u in users if u.role == "doctor")

        return QuickStats(
            accounts=AccountQuickStats(total=len(accounts), active=active, inactive=len(accounts) - active),
            patients=PatientQuickStats(
                total=len(patients),
                thisMonth=count_since(patients, "createdAt", start_of_month(now)),
            ),
            users=UserQuickStats(total=len(users), doctors=doctors, staff=len(users) - doctors),
            appointments=AppointmentQuickStats(
                total=len(appointments),
                today=count_between(appointments, "date", period_bounds("today", now)),
                thisWeek=count_between(appointments, "date", period_bounds("week", now)),
            ),
        )

    def load_all_system_data(self) -> SystemDataResponse:
        accounts = AccountRepository.get_all_accounts(self.store)
        active = sum(1 for a in accounts if a.isActive)

        totals = SystemTotals(
            totalAccounts=len(accounts),
            totalPatients=self.store.collection_group("patients").count(),
            totalUsers=self.store.collection_group("users").count(),
            totalAppointments=self.store.collection_group("appointments").count(),
            activeAccounts=active,
            inactiveAccounts=len(accounts) - active,
        )
        logger.info(
            f"✅ System data loaded: {totals.totalAccounts} accounts, {totals.totalPatients} patients, "
            f"{totals.totalUsers} users, {totals.totalAppointments} appointments"
        )
        return SystemDataResponse(totalStats=totals)
