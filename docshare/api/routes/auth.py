"""
Authentication API Routes
Registration, login, token refresh, and profile management
"""

from fastapi import APIRouter, Depends, status

from docshare.api.dependencies import get_current_user, get_services
from docshare.backend import Services
from docshare.core.logging import get_logger
from docshare.db.models import User as UserModel
from docshare.identity.provider import IdentitySession
from docshare.models.auth import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    RefreshTokenRequest,
    RegisterRequest,
    RegisterResponse,
    SessionResponse,
    UpdateProfileRequest,
    UserResponse,
)

logger = get_logger(__name__)
router = APIRouter()


def _auth_response(user: UserModel, session: IdentitySession) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.from_user_model(user),
        session=SessionResponse(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            token_type=session.token_type,
            expires_in=session.expires_in,
        ),
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    services: Services = Depends(get_services),
):
    """
    Register a new user

    - **email**: User email address (must be unique)
    - **password**: Password (6-72 characters)
    - **fullName**: Display name
    """
    user_id = await services.accounts.register(
        email=request.email,
        password=request.password,
        full_name=request.full_name,
    )
    return RegisterResponse(message="User registered successfully", user_id=str(user_id))


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    services: Services = Depends(get_services),
):
    """
    Authenticate user and return a session

    - **email**: User email address
    - **password**: User password
    """
    user, session = await services.accounts.login(request.email, request.password)
    return _auth_response(user, session)


@router.post("/refresh", response_model=AuthResponse)
async def refresh_token(
    request: RefreshTokenRequest,
    services: Services = Depends(get_services),
):
    """
    Exchange a refresh token for a new session

    - **refresh_token**: Refresh token from login
    """
    user, session = await services.accounts.refresh(request.refresh_token)
    return _auth_response(user, session)


@router.get("/me", response_model=MeResponse)
async def get_current_user_info(
    current_user: UserModel = Depends(get_current_user),
):
    """Get current user information"""
    return MeResponse(user=UserResponse.from_user_model(current_user))


@router.put("/me", response_model=MeResponse)
async def update_current_user(
    request: UpdateProfileRequest,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Update current user profile

    - **fullName**: New display name
    """
    user = await services.accounts.update_profile(current_user.id, request.full_name)
    return MeResponse(user=UserResponse.from_user_model(user))
