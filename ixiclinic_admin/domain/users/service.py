"""User service - Staff users across accounts"""

import logging
from typing import Optional

from fastapi import HTTPException

from ...auth import AdminUser
from ...document_store import DocumentStore
from ...schemas import User, account_matches
from ...shared.table import sort_and_paginate
from ..accounts.repository import ACCOUNTS, AccountRepository, utcnow
from .schemas import UserCreate, UserListResponse, UserStats, UserWithAccount

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user operations"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_all_users_with_account_info(self) -> list[UserWithAccount]:
        accounts = AccountRepository.get_account_briefs(self.store)
        return [
            UserWithAccount.model_validate({**u.model_dump(), "accountInfo": accounts.get(u.accountId)})
            for u in AccountRepository.get_all_records(self.store, "users", User)
        ]

    def list_users(
        self,
        search: Optional[str] = None,
        role: Optional[str] = None,
        account_id: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_dir: str = "asc",
        page: int = 1,
        page_size: int = 10,
    ) -> UserListResponse:
        users = self.get_all_users_with_account_info()
        filtered = users

        if search:
            term = search.lower()
            filtered = [
                u
                for u in filtered
                if term in (u.firstName or "").lower()
                or term in (u.lastName or "").lower()
                or term in (u.email or "").lower()
                or account_matches(u.accountInfo, term)
            ]
        if role:
            filtered = [u for u in filtered if u.role == role]
        if account_id:
            filtered = [u for u in filtered if u.accountId == account_id]

        stats = UserStats(
            total=len(users),
            active=sum(1 for u in users if u.isActive),
            doctors=sum(1 for u in users if u.role == "doctor"),
            staff=sum(1 for u in users if u.role != "doctor"),
            filtered=len(filtered),
        )
        items, meta = sort_and_paginate(filtered, sort_by, sort_dir, page, page_size)
        return UserListResponse(items=items, pagination=meta, stats=stats)

    def create_user(self, data: UserCreate, admin: AdminUser) -> User:
        """Create a staff user inside an existing account"""
        if not AccountRepository.get_account(self.store, data.accountId):
            raise HTTPException(status_code=404, detail="Account not found")

        now = utcnow()
        ref = self.store.collection(f"{ACCOUNTS}/{data.accountId}/users").add(
            {
                **data.model_dump(exclude_none=True),
                "isActive": True,
                "permissions": [],
                "createdAt": now,
                "updatedAt": now,
            }
        )
        AccountRepository.log_admin_action(
            self.store, "create_user", data.accountId, {"userId": ref.id, "email": data.email}, admin.uid
        )
        logger.info(f"👤 User {data.email} created in account {data.accountId}")
        return User.from_snapshot(ref.get())
