"""Appointment domain schemas"""

from typing import Optional

from pydantic import BaseModel

from ...schemas import AccountBrief, Appointment, PageMeta


class AppointmentWithAccount(Appointment):
    accountInfo: Optional[AccountBrief] = None


class AppointmentStats(BaseModel):
    total: int
    scheduled: int
    completed: int
    filtered: int


class AppointmentListResponse(BaseModel):
    items: list[AppointmentWithAccount]
    pagination: PageMeta
    stats: AppointmentStats
