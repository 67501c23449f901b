from fastapi import APIRouter, Depends, Request, status

from core.dependencies import get_account_service
from schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    RefreshTokenResponse,
    RegisterRequest,
)
from schemas.user import UserResponse
from service.account_service import AccountService

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, service: AccountService = Depends(get_account_service)):
    """새로운 사용자를 등록합니다."""
    # 중복 검사는 service에서 처리
    return await service.register(body.username, body.email, body.password, body.nickname)


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    service: AccountService = Depends(get_account_service),
):
    """아이디(또는 이메일)/비밀번호를 확인하고 JWT 토큰 쌍을 반환합니다."""
    client_ip = request.client.host if request.client else ""
    result = await service.login(body.username, body.password, client_ip)
    return LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        token_type=result.token_type,
        expires_in=result.expires_in,
        user=UserResponse.model_validate(result.user),
    )


@router.post("/refresh", response_model=RefreshTokenResponse)
async def refresh_token(body: RefreshTokenRequest, service: AccountService = Depends(get_account_service)):
    """리프레시 토큰으로 새로운 액세스 토큰을 발급받습니다. (리프레시 토큰은 그대로 유지)"""
    result = await service.refresh_token(body.refresh_token)
    return RefreshTokenResponse.model_validate(result)
