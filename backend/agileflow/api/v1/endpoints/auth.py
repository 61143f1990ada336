from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from agileflow.core.config import settings
from agileflow.core.database import get_db
from agileflow.core.exceptions import AgileFlowError, AuthenticationError
from agileflow.core.logging_config import logger, set_user_id
from agileflow.core.rate_limiter import limiter
from agileflow.models.user import User
from agileflow.modules.auth.dependencies import get_current_account_id
from agileflow.schemas.auth import (
    UserRegister,
    UserLogin,
    RefreshTokenRequest,
    Token,
    LoginResponse,
    RegisterResponse,
    MeResponse,
)
from agileflow.schemas.user import UserResponse
from agileflow.services.identity_service import IdentityService
from agileflow.services.user_service import UserService


router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_REGISTER)
async def register(
    request: Request,
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """Public self-registration (rate limited)"""
    client_ip = request.client.host if request.client else "unknown"

    try:
        user = await UserService(db).create_profile(
            email=user_data.email,
            password=user_data.password,
            name=user_data.name,
            role=user_data.role,
        )
    except AgileFlowError as e:
        logger.log_auth_event(
            event="register",
            success=False,
            user_email=user_data.email,
            reason=e.message,
            client_ip=client_ip
        )
        raise

    logger.log_auth_event(
        event="register",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return {
        "message": "User registered successfully",
        "user": UserResponse.model_validate(user),
    }


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Exchange email and password for a token pair (rate limited)"""
    client_ip = request.client.host if request.client else "unknown"
    identity = IdentityService(db)

    try:
        account = await identity.authenticate(credentials.email, credentials.password)
    except AuthenticationError:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    result = await db.execute(select(User).where(User.id == account.id))
    user = result.scalar_one_or_none()
    if not user:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=credentials.email,
            reason="Profile missing",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found"
        )

    set_user_id(user.id)
    logger.log_auth_event(
        event="login",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    return {
        **identity.issue_tokens(user.id, user.email, user.role.value),
        "user": UserResponse.model_validate(user),
    }


@router.post("/refresh", response_model=Token)
async def refresh_token(
    token_request: RefreshTokenRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """Refresh access token using refresh token"""
    client_ip = request.client.host if request.client else "unknown"

    account_id = IdentityService.validate_refresh_token(token_request.refresh_token)

    result = await db.execute(select(User).where(User.id == account_id))
    user = result.scalar_one_or_none()
    if not user:
        logger.log_auth_event(
            event="token_refresh",
            success=False,
            reason="User not found",
            client_ip=client_ip
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    logger.log_auth_event(event="token_refresh", success=True, user_email=user.email, client_ip=client_ip)
    return IdentityService.issue_tokens(user.id, user.email, user.role.value)


@router.get("/me", response_model=MeResponse)
async def get_current_user_info(
    account_id: str = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db)
):
    """Profile of the token holder"""
    result = await db.execute(select(User).where(User.id == account_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found"
        )
    return {"user": user}
