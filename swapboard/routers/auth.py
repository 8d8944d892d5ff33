"""Registration, login and the signed-in member."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from ..backend.client import BackendClient
from ..dependencies import get_backend, get_current_user
from ..schemas import AuthResponse, LoginRequest, ProfileResponse, RegisterRequest
from ..services import login_user, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


def _auth_response(profile: dict[str, Any], token: str) -> AuthResponse:
    return AuthResponse(access_token=token, user_id=profile["id"], username=profile["username"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, backend: BackendClient = Depends(get_backend)) -> AuthResponse:
    profile, token = register_user(backend, payload)
    return _auth_response(profile, token)


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, backend: BackendClient = Depends(get_backend)) -> AuthResponse:
    profile, token = login_user(backend, payload.login, payload.password)
    return _auth_response(profile, token)


@router.get("/me", response_model=ProfileResponse)
async def me(current_user: dict[str, Any] = Depends(get_current_user)) -> ProfileResponse:
    return ProfileResponse.model_validate(current_user)


__all__ = ["router"]
