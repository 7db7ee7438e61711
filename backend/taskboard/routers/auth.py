import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from taskboard.core.config import settings
from taskboard.core.database import get_db
from taskboard.core.security import (
    TOKEN_COOKIE_NAME,
    TokenClaims,
    authenticate,
    create_access_token,
    get_password_hash,
    verify_password,
)
from taskboard.models.user import User
from taskboard.schemas.user import AuthResponse, UserEnvelope, UserLogin, UserProfile, UserRegister

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6

async def get_current_claims(request: Request) -> TokenClaims:
    claims = authenticate(request)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims

def set_token_cookie(response: Response, token: str):
    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
    )

def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserRegister, response: Response, db: AsyncSession = Depends(get_db)):
    name = (user_in.name or "").strip()
    email = (user_in.email or "").strip().lower()
    password = user_in.password or ""

    if not name or not email or not password:
        raise _bad_request("Name, email and password are required")
    if len(name) > NAME_MAX_LENGTH:
        raise _bad_request(f"Name cannot be more than {NAME_MAX_LENGTH} characters")
    if "@" not in email:
        raise _bad_request("Please enter a valid email")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise _bad_request(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise _bad_request("User already exists with this email")

    new_user = User(name=name, email=email, hashed_password=get_password_hash(password))
    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)
    logger.info("Registered user %s", new_user.id)

    token = create_access_token(new_user)
    set_token_cookie(response, token)
    return AuthResponse(
        message="User registered successfully",
        user=UserProfile.model_validate(new_user),
        token=token,
    )

@router.post("/login", response_model=AuthResponse)
async def login(credentials: UserLogin, response: Response, db: AsyncSession = Depends(get_db)):
    email = (credentials.email or "").strip().lower()
    if not email or not credentials.password:
        raise _bad_request("Email and password are required")

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = create_access_token(user)
    set_token_cookie(response, token)
    return AuthResponse(
        message="Login successful",
        user=UserProfile.model_validate(user),
        token=token,
    )

@router.post("/logout")
async def logout(response: Response):
    """Clear the token cookie. The token itself stays valid until it expires."""
    response.delete_cookie(
        key=TOKEN_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
    )
    return {"message": "Logged out successfully"}

@router.get("/me", response_model=UserEnvelope)
async def get_current_user_info(
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    """Get current user profile information"""
    user = await db.get(User, claims.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserEnvelope(
        message="User data retrieved successfully",
        user=UserProfile.model_validate(user),
    )
