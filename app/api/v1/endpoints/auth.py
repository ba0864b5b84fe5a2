from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Request, Query
from sqlalchemy import select, func

from app.api.deps import DB, CurrentUser, require_permissions
from app.core.permissions import permissions_for_role
from app.models.user import User
from app.schemas.auth import (
    LoginRequest,
    RefreshTokenRequest,
    TokenResponse,
    UserCreate,
    UserResponse,
    CurrentUserResponse,
    UserListResponse,
)
from app.schemas.base import page_count
from app.models.hr import Employee
from app.services.auth_service import AuthService
from app.services.audit_service import AuditService

router = APIRouter(tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(
    request: Request,
    data: LoginRequest,
    db: DB,
):
    """
    Authenticate user and return access/refresh tokens.
    """
    auth_service = AuthService(db)
    audit_service = AuditService(db)

    user = await auth_service.authenticate_user(data.email, data.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token, refresh_token, expires_in = await auth_service.create_tokens(user)

    await audit_service.log(
        action="LOGIN",
        entity_type="USER",
        entity_id=user.id,
        user_id=user.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    await db.commit()

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=expires_in,
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    data: RefreshTokenRequest,
    db: DB,
):
    """
    Refresh access token using a valid refresh token.
    """
    auth_service = AuthService(db)

    result = await auth_service.refresh_tokens(data.refresh_token)

    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token, refresh_token, expires_in = result
    await db.commit()

    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=expires_in,
    )


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_info(
    current_user: CurrentUser,
):
    """
    Get current authenticated user's information.
    """
    response = CurrentUserResponse.model_validate(current_user)
    response.permissions = sorted(permissions_for_role(current_user.role))
    return response


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_permissions("users:manage"))],
)
async def create_user(
    data: UserCreate,
    db: DB,
    current_user: CurrentUser,
):
    """Create a user account (admin only)."""
    auth_service = AuthService(db)

    if await auth_service.get_by_email(data.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User with email {data.email} already exists"
        )

    if data.employee_id and await db.get(Employee, data.employee_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found"
        )

    user = await auth_service.register_user(
        email=data.email,
        password=data.password,
        full_name=data.full_name,
        role=data.role,
        employee_id=data.employee_id,
    )
    await AuditService(db).log_created(
        "USER",
        user.id,
        {"email": user.email, "role": user.role},
        user_id=current_user.id,
    )
    await db.commit()

    return user


@router.get(
    "/users",
    response_model=UserListResponse,
    dependencies=[Depends(require_permissions("users:manage"))],
)
async def list_users(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
    role: Optional[str] = None,
):
    """List user accounts."""
    query = select(User)
    if role:
        query = query.where(User.role == role.upper())

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0

    result = await db.execute(
        query.order_by(User.email).offset((page - 1) * size).limit(size)
    )
    users = result.scalars().all()

    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        size=size,
        pages=page_count(total, size),
    )
