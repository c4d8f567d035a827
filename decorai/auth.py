# auth.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from decorai.db import get_db
from decorai.models import Profile
from decorai.settings import settings

logger = logging.getLogger(__name__)

# ===================================================================
# Pydantic Schemas (Data Validation)
# ===================================================================

class ProfileCreate(BaseModel):
    """Schema for user registration request."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: Optional[str] = None

class ProfilePublic(BaseModel):
    """Schema for safely exposing profile data."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: EmailStr
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class Token(BaseModel):
    """Schema for the authentication token response."""
    access_token: str
    token_type: str


# ===================================================================
# Configuration
# ===================================================================

router = APIRouter(prefix="/auth", tags=["Auth"])

# scrypt is the default scheme; bcrypt hashes are still accepted on verify.
pwd_context = CryptContext(schemes=["scrypt", "bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login")


# ===================================================================
# Utility Functions
# ===================================================================

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifies a plain password against a hashed one."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Hashes a plain password."""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Creates a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

async def get_profile_by_email(db: AsyncSession, email: str) -> Optional[Profile]:
    """Fetches a profile from the database by email."""
    result = await db.execute(select(Profile).where(Profile.email == email.lower()))
    return result.scalars().first()


# ===================================================================
# Current User Dependency
# ===================================================================

async def get_current_user(
    token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)
) -> Profile:
    """Dependency to get the current authenticated profile from a token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        user_id = uuid.UUID(payload.get("user_id") or "")
    except (JWTError, ValueError):
        raise credentials_exception

    user = await db.get(Profile, user_id)
    if user is None:
        raise credentials_exception
    return user


# ===================================================================
# API Endpoints
# ===================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=ProfilePublic)
async def register_user(user_in: ProfileCreate, db: AsyncSession = Depends(get_db)):
    """
    Handles new account registration.
    Creates the profile row that owns all of the user's projects.
    """
    existing = await get_profile_by_email(db, user_in.email)
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists.",
        )

    profile = Profile(
        email=user_in.email.lower(),
        full_name=user_in.full_name,
        hashed_password=get_password_hash(user_in.password),
    )
    try:
        db.add(profile)
        await db.commit()
        await db.refresh(profile)
    except Exception:
        await db.rollback()
        logger.exception("Database error while registering %s", user_in.email)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the account.")

    logger.info("Registered profile %s", profile.id)
    return profile


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_db)
):
    """
    Handles sign-in and returns a JWT access token.
    Uses OAuth2PasswordRequestForm, expecting form-data (`username` is the email).
    """
    user = await get_profile_by_email(db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(data={"user_id": str(user.id)})
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/logout")
async def logout(current_user: Profile = Depends(get_current_user)):
    """
    Tokens are stateless; signing out means the client drops its token.
    """
    logger.info("Profile %s signed out", current_user.id)
    return {"message": "Signed out successfully."}


@router.get("/me", response_model=ProfilePublic)
async def read_users_me(current_user: Profile = Depends(get_current_user)):
    """Fetches the profile of the currently authenticated user."""
    return current_user
