"""Users router - Staff users across accounts"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import AdminUser, require_permission
from ...document_store import DocumentStore, get_store
from ...schemas import User
from .schemas import UserCreate, UserListResponse
from .service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(store: DocumentStore = Depends(get_store)) -> UserService:
    """Dependency injection for UserService"""
    return UserService(store)


@router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    account_id: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_dir: str = Query("asc", pattern="^(asc|desc)$"),
    page: int = Query(1),
    page_size: int = Query(10, ge=1, le=100),
    admin: AdminUser = Depends(require_permission("read")),
    service: UserService = Depends(get_user_service),
):
    return service.list_users(search, role, account_id, sort_by, sort_dir, page, page_size)


@router.post("", response_model=User, status_code=201)
async def create_user(
    body: UserCreate,
    admin: AdminUser = Depends(require_permission("write")),
    service: UserService = Depends(get_user_service),
):
    return service.create_user(body, admin)
