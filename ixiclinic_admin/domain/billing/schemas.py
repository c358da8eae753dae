"""Billing domain schemas - PayPal subscription administration"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ReasonRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=127)


class ReviseRequest(BaseModel):
    """Local plan name (mapped to its PayPal plan) or a raw PayPal plan ID"""

    planName: str = Field(min_length=1)


class SubscriptionView(BaseModel):
    """A PayPal subscription with its local status and owning account"""

    subscription: dict[str, Any]
    statusLabel: str
    localStatus: str
    hasProblems: bool
    accountId: Optional[str] = None
    planName: Optional[str] = None


class SubscriptionCounts(BaseModel):
    total: int
    active: int
    problems: int
    filtered: int


class SubscriptionListResponse(BaseModel):
    items: list[SubscriptionView]
    counts: SubscriptionCounts


class SubscriptionActionResult(BaseModel):
    success: bool = True
    subscriptionId: str
    action: str
    localStatus: Optional[str] = None
    accountId: Optional[str] = None
    approvalUrl: Optional[str] = None
    paypalResponse: dict[str, Any] = Field(default_factory=dict)


class UsageMetrics(BaseModel):
    planUsage: dict[str, int]
    totalSubscriptions: int
    activeSubscriptions: int
    problemSubscriptions: int
    monthlyRevenue: float


class WebhookSignatureRequest(BaseModel):
    headers: dict[str, str]
    event: dict[str, Any]


class WebhookSignatureResult(BaseModel):
    verified: bool
    verificationStatus: Optional[str] = None
