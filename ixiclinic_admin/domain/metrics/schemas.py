"""Metrics domain schemas"""

from typing import Literal

from pydantic import BaseModel

from ...schemas import SystemAlert


class AdminMetrics(BaseModel):
    totalAccounts: int
    activeSubscriptions: int
    trialAccounts: int
    monthlyRevenue: float
    totalPatients: int
    totalAppointments: int
    totalInvoices: int
    totalPrescriptions: int
    systemHealth: Literal["healthy", "warning", "error"]


class AccountQuickStats(BaseModel):
    total: int
    active: int
    inactive: int


class PatientQuickStats(BaseModel):
    total: int
    thisMonth: int


class UserQuickStats(BaseModel):
    total: int
    doctors: int
    staff: int


class AppointmentQuickStats(BaseModel):
    total: int
    today: int
    thisWeek: int


class QuickStats(BaseModel):
    accounts: AccountQuickStats
    patients: PatientQuickStats
    users: UserQuickStats
    appointments: AppointmentQuickStats


class AlertsResponse(BaseModel):
    items: list[SystemAlert]


class SystemTotals(BaseModel):
    totalAccounts: int
    totalPatients: int
    totalUsers: int
    totalAppointments: int
    activeAccounts: int
    inactiveAccounts: int


class SystemDataResponse(BaseModel):
    totalStats: SystemTotals
