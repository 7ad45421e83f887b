# routers/auth.py — Login, signup, demo login and logout
from fastapi import APIRouter, Depends, HTTPException

from auth import (
    AuthService, UserDirectory, UserLogin, UserSignup, TokenResponse,
    ACCESS_TOKEN_EXPIRE_MINUTES, CurrentUser, get_current_user, get_directory,
)
from registry import BoardRegistry, get_registry
from schemas import BoardUser

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _build_token_response(user: BoardUser) -> TokenResponse:
    return TokenResponse(
        access_token=AuthService.token_for(user),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user={
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role.value,
            "avatar_url": user.avatar_url,
        },
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    directory: UserDirectory = Depends(get_directory),
):
    """Authenticate with email and password"""
    user = directory.authenticate(credentials.email, credentials.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _build_token_response(user)


@router.post("/signup", response_model=TokenResponse, status_code=201)
async def signup(
    data: UserSignup,
    directory: UserDirectory = Depends(get_directory),
):
    """Create a member account and sign in"""
    user = directory.register(data)
    return _build_token_response(user)


@router.post("/demo", response_model=TokenResponse)
async def demo_login(directory: UserDirectory = Depends(get_directory)):
    """Sign in as the shared demo account"""
    return _build_token_response(directory.guest())


@router.post("/logout")
async def logout(
    user: CurrentUser = Depends(get_current_user),
    directory: UserDirectory = Depends(get_directory),
    boards: BoardRegistry = Depends(get_registry),
):
    """Revoke the current token and close the user's board session"""
    if user.token_jti:
        directory.revoke(user.token_jti)
    await boards.discard(user.id)
    return {"message": "Logged out successfully"}


@router.get("/me")
async def get_me(user: CurrentUser = Depends(get_current_user)):
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "avatar_url": user.avatar_url,
    }
