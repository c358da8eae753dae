"""
Records stored in the document store.

Documents are schema-less and written by several clients, so every model
tolerates unknown keys and defaults missing ones. Use `from_snapshot` to
build a record from a stored document and `model_dump(exclude_none=True)`
to write one back.
"""

import logging
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

AccountType = Literal["personal", "clinic", "hospital"]
SubscriptionStatus = Literal["active", "trial", "pending", "inactive", "cancelled", "suspended", "expired"]
UserRole = Literal["admin", "doctor", "assistant", "user"]


class Record(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None

    @classmethod
    def from_snapshot(cls, snapshot):
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return cls.model_validate(data)

    @classmethod
    def from_snapshots(cls, snapshots) -> list:
        """Records for a bulk read; documents that do not fit the model are logged and skipped"""
        records = []
        for snapshot in snapshots:
            try:
                records.append(cls.from_snapshot(snapshot))
            except ValidationError as e:
                logger.warning(
                    f"⚠️ Skipping malformed {cls.__name__} {snapshot.reference.path}: {e.error_count()} errors"
                )
        return records


class CurrencySettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: str = "USD"
    symbol: str = "$"
    symbolPosition: Literal["before", "after"] = "before"
    decimalSeparator: str = "."
    thousandsSeparator: str = ","
    decimalPlaces: int = 2


class AccountSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    centerName: Optional[str] = None
    doctorName: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    rnc_cedula: Optional[str] = None
    currency: Optional[CurrencySettings] = None


class PlanLimits(BaseModel):
    model_config = ConfigDict(extra="allow")

    patients: int = 0
    users: int = 0
    storage: int = 0


class Plan(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    price: float = 0
    type: Optional[AccountType] = None
    tier: Optional[str] = None
    billing: Optional[Literal["monthly", "quarterly", "annual"]] = None
    features: list[str] = Field(default_factory=list)
    limits: PlanLimits = Field(default_factory=PlanLimits)
    popular: bool = False
    description: Optional[str] = None
    paypalPlanId: Optional[str] = None


class BillingInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    plan: Optional[Plan] = None
    subscriptionStatus: Optional[str] = None
    membershipType: Optional[str] = None
    paymentMethod: Optional[Any] = None
    trialStartDate: Optional[datetime] = None
    trialEndDate: Optional[datetime] = None
    nextPaymentDate: Optional[datetime] = None
    paypalSubscriptionId: Optional[str] = None
    adminNotes: Optional[str] = None


class Account(Record):
    email: Optional[str] = None
    type: Optional[str] = None
    settings: AccountSettings = Field(default_factory=AccountSettings)
    billingInfo: BillingInfo = Field(default_factory=BillingInfo)
    ownerId: Optional[str] = None
    firebaseAuthEmail: Optional[str] = None
    adminNotes: Optional[str] = None
    isActive: bool = False
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.settings.centerName or self.email or "Sin cuenta"


class Patient(Record):
    accountId: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    createdAt: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.firstName or ''} {self.lastName or ''}".strip()


class User(Record):
    accountId: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    isActive: bool = True
    permissions: list[str] = Field(default_factory=list)
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class Appointment(Record):
    accountId: Optional[str] = None
    patientId: Optional[str] = None
    doctorId: Optional[str] = None
    date: Optional[datetime] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    createdAt: Optional[datetime] = None


class Invoice(Record):
    accountId: Optional[str] = None
    patientId: Optional[str] = None
    invoiceNumber: Optional[str] = None
    description: Optional[str] = None
    amount: float = 0
    currency: Optional[str] = None
    status: Optional[str] = None
    issueDate: Optional[datetime] = None
    dueDate: Optional[datetime] = None
    paidDate: Optional[datetime] = None
    createdAt: Optional[datetime] = None


class AdminAction(Record):
    action: str
    accountId: Optional[str] = None
    details: dict = Field(default_factory=dict)
    adminId: Optional[str] = None
    timestamp: Optional[datetime] = None
    createdAt: Optional[datetime] = None


class SystemAlert(Record):
    type: Optional[str] = None
    severity: Optional[str] = None
    message: Optional[str] = None
    resolved: bool = False
    resolvedAt: Optional[datetime] = None
    resolvedBy: Optional[str] = None
    createdAt: Optional[datetime] = None


class AccountBrief(BaseModel):
    """Account fields shown next to records that belong to it"""

    id: str
    email: Optional[str] = None
    centerName: Optional[str] = None
    isActive: bool = False

    @classmethod
    def from_account(cls, account: Account) -> "AccountBrief":
        return cls(
            id=account.id,
            email=account.email,
            centerName=account.settings.centerName,
            isActive=account.isActive,
        )


def account_label(info: Optional[AccountBrief]) -> str:
    if info is None:
        return "Sin cuenta"
    return info.centerName or info.email or "Sin cuenta"


def account_matches(info: Optional[AccountBrief], term: str) -> bool:
    """Case-insensitive match of `term` against the account email or center name"""
    if info is None:
        return False
    return term in (info.email or "").lower() or term in (info.centerName or "").lower()


class PageMeta(BaseModel):
    current_page: int
    page_size: int
    total_pages: int
    total_items: int
    can_go_next: bool
    can_go_previous: bool
    sort_by: Optional[str] = None
    sort_dir: Optional[str] = None
