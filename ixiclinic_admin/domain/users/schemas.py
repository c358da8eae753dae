"""User domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...schemas import AccountBrief, PageMeta, User, UserRole
from ...shared.validators import validate_email, validate_phone


class UserWithAccount(User):
    accountInfo: Optional[AccountBrief] = None


class UserCreate(BaseModel):
    firstName: str = Field(min_length=1)
    lastName: str = Field(min_length=1)
    email: str
    accountId: str = Field(min_length=1)
    phone: Optional[str] = None
    role: UserRole = "user"

    @field_validator("firstName", "lastName", "accountId")
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("Field cannot be blank")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_user_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone_number(cls, v):
        return validate_phone(v)


class UserStats(BaseModel):
    total: int
    active: int
    doctors: int
    staff: int
    filtered: int


class UserListResponse(BaseModel):
    items: list[UserWithAccount]
    pagination: PageMeta
    stats: UserStats
