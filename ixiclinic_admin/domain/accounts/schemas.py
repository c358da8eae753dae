"""Account domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...schemas import Account, AdminAction, Appointment, PageMeta, Patient, User
from ...shared.validators import validate_email, validate_phone, validate_rnc_cedula


class AccountCreate(BaseModel):
    """New account form: tenant details, membership and optional setup steps"""

    email: str
    centerName: str = Field(min_length=1)
    doctorName: str = Field(min_length=1)

    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: str = "República Dominicana"
    rnc_cedula: Optional[str] = None

    accountType: Literal["personal", "clinic", "hospital"] = "personal"

    membershipType: Literal["trial", "free", "paid"] = "trial"
    selectedPlan: Optional[str] = None
    trialDays: int = Field(default=30, ge=1, le=365)
    freeDays: int = Field(default=90, ge=1, le=365)

    assignFirebaseAuth: bool = False
    firebaseEmail: Optional[str] = None

    createInitialUser: bool = True
    initialUserEmail: Optional[str] = None
    initialUserName: Optional[str] = None

    adminNotes: Optional[str] = None

    @field_validator("email", "firebaseEmail", "initialUserEmail")
    @classmethod
    def validate_emails(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone_number(cls, v):
        return validate_phone(v)

    @field_validator("rnc_cedula")
    @classmethod
    def validate_tax_id(cls, v):
        return validate_rnc_cedula(v)

    @model_validator(mode="after")
    def check_setup_fields(self):
        if self.membershipType == "paid" and not self.selectedPlan:
            raise ValueError("selectedPlan is required for a paid membership")
        if self.assignFirebaseAuth and not self.firebaseEmail:
            raise ValueError("firebaseEmail is required to assign Firebase Auth")
        if self.createInitialUser and not self.initialUserEmail:
            raise ValueError("initialUserEmail is required to create the initial user")
        if self.createInitialUser and not (self.initialUserName or "").strip():
            raise ValueError("initialUserName is required to create the initial user")
        return self


class AccountSettingsUpdate(BaseModel):
    centerName: Optional[str] = None
    doctorName: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    rnc_cedula: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone_number(cls, v):
        return validate_phone(v)

    @field_validator("rnc_cedula")
    @classmethod
    def validate_tax_id(cls, v):
        return validate_rnc_cedula(v)


class AccountUpdate(BaseModel):
    email: Optional[str] = None
    type: Optional[Literal["personal", "clinic", "hospital"]] = None
    isActive: Optional[bool] = None
    settings: Optional[AccountSettingsUpdate] = None
    subscriptionStatus: Optional[str] = None
    paypalSubscriptionId: Optional[str] = None
    adminNotes: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_account_email(cls, v):
        return validate_email(v)


class DeleteAccountRequest(BaseModel):
    """The caller must explicitly acknowledge an irreversible deletion"""

    confirm: bool = False


class DeleteAccountResponse(BaseModel):
    account_id: str
    deleted_documents: int
    deleted_by_collection: dict[str, int]
    identity_user_deleted: bool


class MembershipActionRequest(BaseModel):
    action: Literal["assign_free", "extend_trial", "extend_membership", "change_plan"]
    planName: Optional[str] = None
    days: Optional[int] = Field(default=None, ge=1, le=3650)
    reason: str = Field(min_length=1)

    @model_validator(mode="after")
    def check_action_fields(self):
        if self.action in ("assign_free", "change_plan") and not self.planName:
            raise ValueError(f"planName is required for {self.action}")
        if self.action in ("assign_free", "extend_trial", "extend_membership") and not self.days:
            raise ValueError(f"days is required for {self.action}")
        return self


class IdentityLinkRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_identity_email(cls, v):
        return validate_email(v)


class IdentityUnlinkRequest(BaseModel):
    reason: str = Field(min_length=1)


class AccountCounts(BaseModel):
    total: int
    active: int
    trial: int


class AccountListResponse(BaseModel):
    items: list[Account]
    pagination: PageMeta
    counts: AccountCounts


class AccountStats(BaseModel):
    totalPatients: int
    totalAppointments: int
    totalUsers: int
    recentAppointments: int


class AccountInfoResponse(BaseModel):
    account: Account
    patients: list[Patient]
    appointments: list[Appointment]
    users: list[User]
    stats: AccountStats


class UsageLimit(BaseModel):
    used: int
    limit: int


class AccountSummaryStats(BaseModel):
    totalPatients: int
    totalAppointments: int
    totalRevenue: float
    lastActivity: Optional[datetime] = None
    planUsage: dict[str, UsageLimit]


class AccountSummaryResponse(BaseModel):
    account: Account
    stats: AccountSummaryStats


class AdminActionsResponse(BaseModel):
    items: list[AdminAction]
