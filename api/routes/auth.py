"""
api/routes/auth.py -- Authentication REST endpoints.

Routes:
  POST /auth/register -- create a CUSTOMER identity; 201 {accessToken}
  POST /auth/login    -- password login; 201 {accessToken}
  GET  /auth/me       -- current identity (requires a bearer token)

Failures are raised as core.errors.AppError subclasses and rendered by the
exception handler in api/main.py:
  register: 422 EmailAlreadyTakenError
  login:    404 EmailNotRegisteredError, 401 WrongPasswordError
  me:       401 from the gate, 404 RecordNotFoundError

Security:
  [M5] Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import LoginRequest, ProfileResponse, RegisterRequest, TokenResponse
from auth.dependencies import authorize
from auth.models import Claims
from auth.service import AuthService

# Auth policy:
# - POST /auth/register: public
# - POST /auth/login:    public
# - GET  /auth/me:       requires any authenticated identity (authorize())
router = APIRouter()


@router.post("/auth/register", response_model=TokenResponse, status_code=201)
def register(request: Request, response: Response, body: RegisterRequest) -> TokenResponse:
    """Register a new identity with the default role and log it in."""
    service: AuthService = request.app.state.auth_service
    token = service.register(body.name, body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return TokenResponse(access_token=token)


@router.post("/auth/login", response_model=TokenResponse, status_code=201)
def login(request: Request, response: Response, body: LoginRequest) -> TokenResponse:
    """Exchange email and password for a session token."""
    service: AuthService = request.app.state.auth_service
    token = service.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return TokenResponse(access_token=token)


@router.get("/auth/me", response_model=ProfileResponse)
def me(request: Request, claims: Claims = Depends(authorize())) -> ProfileResponse:
    """Return the stored identity behind the bearer token."""
    service: AuthService = request.app.state.auth_service
    return ProfileResponse.from_identity(service.get_profile(claims))
