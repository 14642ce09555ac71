"""
PRFlow — Auth endpoints
POST /auth/login, GET /auth/me
"""
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.api.deps import get_db, require_auth
from prflow.config import get_settings
from prflow.core.identity import CurrentUser
from prflow.core.security import create_access_token, verify_password
from prflow.models.user import User
from prflow.schemas.master import UserResponse

router = APIRouter()
settings = get_settings()


# --- Schemas ---
class LoginRequest(BaseModel):
    login: str  # employee number or email
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# --- Endpoints ---
@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """Authenticate with employee number (or email) and password."""
    result = await db.execute(
        select(User).where(or_(User.employee_number == body.login, User.email == body.login))
    )
    user = result.scalar_one_or_none()
    if not user or not user.is_active or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = create_access_token(
        subject=str(user.id),
        extra_claims={
            "email": user.email,
            "role": user.role,
            "employee_number": user.employee_number,
            "full_name": user.full_name,
        },
    )
    return TokenResponse(
        access_token=token,
        expires_in=settings.JWT_ACCESS_TOKEN_TTL_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def me(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    record = await db.get(User, user.id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse.model_validate(record)
