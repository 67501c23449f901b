from fastapi import APIRouter, Depends, Query, Request, Response, status

from core.auth import get_user_id, require_admin, require_auth
from core.config import settings
from core.dependencies import get_account_service
from core.exceptions import BadRequest
from models.users import Role
from schemas.auth import ChangePasswordRequest
from schemas.common import MessageResponse, PageResponse, Pagination
from schemas.user import AdminUpdateUserRequest, UpdateUserRequest, UserResponse
from service.account_service import AccountService, UserListOptions

router = APIRouter(dependencies=[Depends(require_auth())])


@router.get("/me", response_model=UserResponse)
async def get_me(request: Request, service: AccountService = Depends(get_account_service)):
    """내 정보를 조회합니다."""
    return await service.get_by_id(get_user_id(request))


@router.put("/me", response_model=UserResponse)
async def update_me(
    body: UpdateUserRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    """내 프로필을 수정합니다."""
    return await service.update_profile(get_user_id(request), body.model_dump(exclude_unset=True))


@router.put("/me/password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    """비밀번호를 변경합니다. (기존 비밀번호 확인 필수)"""
    await service.change_password(get_user_id(request), body.old_password, body.new_password)
    return MessageResponse(message="비밀번호가 변경되었습니다.")


@router.get("", response_model=PageResponse[UserResponse], dependencies=[Depends(require_admin())])
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.pagination_default_page_size, ge=1),
    username: str | None = Query(None, max_length=50),
    email: str | None = Query(None, max_length=100),
    user_status: int | None = Query(None, alias="status", ge=0, le=2),
    role: Role | None = None,
    sort_by: str | None = Query(None, pattern="^(created_at|updated_at|username|email)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    service: AccountService = Depends(get_account_service),
):
    """사용자 목록을 조회합니다. (관리자)"""
    opts = UserListOptions(
        page=page,
        page_size=page_size,
        username=username,
        email=email,
        status=user_status,
        role=role.value if role else None,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    users, total = await service.list_users(opts)
    return PageResponse[UserResponse](
        list=[UserResponse.model_validate(u) for u in users],
        pagination=Pagination.of(opts.page, opts.page_size, total),
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, service: AccountService = Depends(get_account_service)):
    """사용자 정보를 조회합니다."""
    return await service.get_by_id(user_id)


@router.put("/{user_id}", response_model=UserResponse, dependencies=[Depends(require_admin())])
async def admin_update_user(
    user_id: str,
    body: AdminUpdateUserRequest,
    service: AccountService = Depends(get_account_service),
):
    """사용자 정보/상태/역할을 수정합니다. (관리자)"""
    return await service.admin_update(user_id, body.model_dump(exclude_unset=True))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin())])
async def delete_user(
    user_id: str,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    """사용자를 삭제합니다. (관리자, 소프트 삭제)"""
    if user_id == get_user_id(request):
        raise BadRequest("자기 자신은 삭제할 수 없습니다.")
    await service.delete(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
