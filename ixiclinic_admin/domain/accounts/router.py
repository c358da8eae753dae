"""Accounts router - FastAPI endpoints for tenant account administration"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import AdminUser, require_permission
from ...document_store import DocumentStore, get_store
from ...identity_provider import IdentityProvider, get_identity_provider
from ...schemas import Account, Appointment, Patient, User
from ..plans.store import PlansStore, get_plans_store
from .schemas import (
    AccountCreate,
    AccountInfoResponse,
    AccountListResponse,
    AccountSummaryResponse,
    AccountUpdate,
    AdminActionsResponse,
    DeleteAccountRequest,
    DeleteAccountResponse,
    IdentityLinkRequest,
    IdentityUnlinkRequest,
    MembershipActionRequest,
)
from .service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["Accounts"])


def get_account_service(
    store: DocumentStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity_provider),
    plans: PlansStore = Depends(get_plans_store),
) -> AccountService:
    """Dependency injection for AccountService"""
    return AccountService(store, identity, plans)


@router.get("", response_model=AccountListResponse)
async def list_accounts(
    search: Optional[str] = Query(None, description="Matches email, center name or doctor name"),
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1),
    page_size: int = Query(10, ge=1, le=100),
    admin: AdminUser = Depends(require_permission("read")),
    service: AccountService = Depends(get_account_service),
):
    return service.list_accounts(search, status, type, sort_by, sort_dir, page, page_size)


@router.post("", response_model=Account, status_code=201)
async def create_account(
    body: AccountCreate,
    admin: AdminUser = Depends(require_permission("write")),
    service: AccountService = Depends(get_account_service),
):
    """Create an account with its membership, identity link and initial user"""
    return service.create_account_with_setup(body, admin)


@router.get("/{account_id}", response_model=AccountInfoResponse)
async def get_account_info(
    account_id: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: AccountService = Depends(get_account_service),
):
    return service.get_account_info(account_id)


@router.get("/{account_id}/summary", response_model=AccountSummaryResponse)
async def get_account_summary(
    account_id: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: AccountService = Depends(get_account_service),
):
    return service.get_account_summary(account_id)


@router.patch("/{account_id}", response_model=Account)
async def update_account(
    account_id: str,
    body: AccountUpdate,
    admin: AdminUser = Depends(require_permission("write")),
    service: AccountService = Depends(get_account_service),
):
    return service.update_account(account_id, body, admin)


@router.delete("/{account_id}", response_model=DeleteAccountResponse)
async def delete_account(
    account_id: str,
    body: DeleteAccountRequest,
    admin: AdminUser = Depends(require_permission("delete")),
    service: AccountService = Depends(get_account_service),
):
    """
    Delete an account and all of its data. Irreversible.

    Requires `{"confirm": true}` in the body.
    """
    return service.delete_account_completely(account_id, body.confirm, admin)


@router.post("/{account_id}/membership", response_model=Account)
async def apply_membership_action(
    account_id: str,
    body: MembershipActionRequest,
    admin: AdminUser = Depends(require_permission("billing")),
    service: AccountService = Depends(get_account_service),
):
    return service.apply_membership_action(account_id, body, admin)


@router.post("/{account_id}/identity", response_model=Account)
async def link_identity(
    account_id: str,
    body: IdentityLinkRequest,
    admin: AdminUser = Depends(require_permission("write")),
    service: AccountService = Depends(get_account_service),
):
    return service.link_identity(account_id, body.email, admin)


@router.delete("/{account_id}/identity", response_model=Account)
async def unlink_identity(
    account_id: str,
    body: IdentityUnlinkRequest,
    admin: AdminUser = Depends(require_permission("write")),
    service: AccountService = Depends(get_account_service),
):
    return service.unlink_identity(account_id, body.reason, admin)


@router.get("/{account_id}/actions", response_model=AdminActionsResponse)
async def get_admin_actions(
    account_id: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: AccountService = Depends(get_account_service),
):
    return AdminActionsResponse(items=service.get_admin_actions(account_id))


@router.get("/{account_id}/patients", response_model=list[Patient])
async def get_account_patients(
    account_id: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: AccountService = Depends(get_account_service),
):
    return service.get_account_patients(account_id)


@router.get("/{account_id}/users", response_model=list[User])
async def get_account_users(
    account_id: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: AccountService = Depends(get_account_service),
):
    return service.get_account_users(account_id)


@router.get("/{account_id}/appointments", response_model=list[Appointment])
async def get_account_appointments(
    account_id: str,
    admin: AdminUser = Depends(require_permission("read")),
    service: AccountService = Depends(get_account_service),
):
    return service.get_account_appointments(account_id)
