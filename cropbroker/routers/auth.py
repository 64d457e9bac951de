"""Registration and login endpoints."""

from fastapi import APIRouter, Depends, status

from cropbroker.config import Settings, get_settings
from cropbroker.repositories import Repositories, get_repositories
from cropbroker.routers._errors import service_errors
from cropbroker.schemas.auth import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from cropbroker.services import accounts

router = APIRouter()


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a user",
)
async def register(
    data: RegisterRequest,
    repos: Repositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    with service_errors():
        user, token = await accounts.register(repos, settings, data)
    return TokenResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=TokenResponse, summary="Log in")
async def login(
    data: LoginRequest,
    repos: Repositories = Depends(get_repositories),
    settings: Settings = Depends(get_settings),
) -> TokenResponse:
    with service_errors():
        user, token = await accounts.login(repos, settings, data)
    return TokenResponse(token=token, user=UserResponse.model_validate(user))
