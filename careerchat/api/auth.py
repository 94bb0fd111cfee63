"""
Authentication API endpoints.
"""

import logging

from fastapi import APIRouter, HTTPException, status, Depends

from ..models import UserCreate, LoginRequest, RegisterResponse, Token, User
from ..utils.auth import (
    authenticate_user,
    create_access_token,
    get_password_hash,
    create_user_in_db,
    get_user_by_email,
    get_current_user_id,
    get_user_from_db,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


def _public_user(user: dict) -> User:
    return User(**{k: v for k, v in user.items() if k != 'hashed_password'})


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate):
    """
    Register a new user with email and password.

    Raises:
        HTTPException: 409 if the email is already registered
    """
    if await get_user_by_email(user_data.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )

    user = await create_user_in_db(
        email=user_data.email,
        name=user_data.name,
        hashed_password=get_password_hash(user_data.password),
    )

    return RegisterResponse(
        success=True,
        message="User created successfully. Please sign in.",
        user=_public_user(user),
    )


@router.post("/login", response_model=Token)
async def login(credentials: LoginRequest):
    """
    Sign in with email and password and receive a bearer token.

    Raises:
        HTTPException: 401 if authentication fails
    """
    user = await authenticate_user(credentials.email, credentials.password)
    if not user:
        logger.warning("Failed sign-in attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(data={"sub": user["id"], "email": user["email"]})
    return Token(access_token=access_token, token_type="bearer")


@router.get("/me", response_model=User)
async def get_current_user(user_id: str = Depends(get_current_user_id)):
    """
    Get the signed-in user.

    Raises:
        HTTPException: 404 if the user no longer exists
    """
    user = await get_user_from_db(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return _public_user(user)
