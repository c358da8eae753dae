"""Patient domain schemas"""

from typing import Optional

from pydantic import BaseModel

from ...schemas import AccountBrief, PageMeta, Patient


class PatientWithAccount(Patient):
    accountInfo: Optional[AccountBrief] = None


class PatientStats(BaseModel):
    total: int
    accountsWithPatients: int
    thisMonth: int
    filtered: int


class PatientListResponse(BaseModel):
    items: list[PatientWithAccount]
    pagination: PageMeta
    stats: PatientStats
