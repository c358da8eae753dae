"""Plans domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ...schemas import Plan, PlanLimits

BillingCycle = Literal["monthly", "quarterly", "annual"]


class PricingSync(BaseModel):
    lastSync: Optional[datetime] = None
    source: Literal["paypal", "firebase", "manual"] = "manual"
    version: str = "1.0.0"
    status: Literal["synced", "out_of_sync", "error"] = "synced"


class PricingDifference(BaseModel):
    planId: str
    planName: str
    localPrice: float
    remotePrice: float
    source: Literal["paypal", "firebase", "manual"] = "paypal"
    action: Literal["update_local", "update_remote", "conflict"] = "update_local"


class SyncResult(BaseModel):
    success: bool
    differences: list[PricingDifference] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    syncScore: Optional[int] = None


class CheckResult(BaseModel):
    success: bool
    mismatches: list[PricingDifference] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class ApplyRequest(BaseModel):
    differences: list[PricingDifference]


class ApplyResult(BaseModel):
    success: bool
    applied: int
    errors: list[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    isValid: bool
    issues: list[str] = Field(default_factory=list)
    lastValidation: datetime


class PlanCreate(BaseModel):
    """Schema for creating a custom plan; the name is generated when omitted"""

    name: Optional[str] = None
    price: float
    type: Literal["personal", "clinic", "hospital"]
    tier: str
    billing: BillingCycle = "monthly"
    features: list[str] = Field(default_factory=list)
    limits: PlanLimits = Field(default_factory=PlanLimits)
    popular: bool = False
    description: Optional[str] = None

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v < 0:
            raise ValueError("Price cannot be negative")
        return round(v, 2)


class PlanUpdate(BaseModel):
    price: Optional[float] = None
    type: Optional[Literal["personal", "clinic", "hospital"]] = None
    tier: Optional[str] = None
    billing: Optional[BillingCycle] = None
    features: Optional[list[str]] = None
    limits: Optional[PlanLimits] = None
    popular: Optional[bool] = None
    description: Optional[str] = None

    @field_validator("price")
    @classmethod
    def validate_price(cls, v):
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v


class PlanMappingRequest(BaseModel):
    paypalPlanId: str

    @field_validator("paypalPlanId")
    @classmethod
    def validate_paypal_plan_id(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("PayPal plan ID is required")
        return v


class PlanPriceResponse(BaseModel):
    name: str
    billing: Optional[str] = None
    userCount: Optional[int] = None
    basePrice: float
    price: float
    currency: str


class PlansResponse(BaseModel):
    plans: list[Plan]
    paypalPlanMapping: dict[str, str]
    pricingConfig: dict
    pricingSync: PricingSync
