"""
Content API — Auth API

Passwords are checked by Supabase Auth: login only relays the password grant
and returns the issued token pair. Registration provisions the auth user and
the `users` row together; see services/accounts.py.
"""
import logging
import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status

from infinite_flow.api.errors import raise_for_result
from infinite_flow.core.config import Settings
from infinite_flow.core.deps import get_app_settings, get_registration_service
from infinite_flow.schemas.profile import (
    EmailAvailability,
    LoginRequest,
    RegisteredUser,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
)
from infinite_flow.services.accounts import RegistrationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, settings: Settings = Depends(get_app_settings)):
    if not settings.supabase_configured:
        raise HTTPException(status_code=503, detail="Supabase credentials are not configured.")

    try:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            r = await client.post(
                f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": payload.email, "password": payload.password},
                headers={"apikey": settings.SUPABASE_SERVICE_ROLE_KEY},
            )
    except httpx.TimeoutException:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Auth service did not respond in time. Please retry.",
        )
    except httpx.RequestError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Auth service unreachable: {exc}",
        )

    if r.status_code in (400, 401):
        logger.info("Failed login for %s", payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password.")
    if not r.is_success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Login failed.")

    body = r.json()
    return TokenResponse(
        access_token=body["access_token"],
        refresh_token=body.get("refresh_token", ""),
        expires_in=body.get("expires_in", 3600),
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, accounts: RegistrationService = Depends(get_registration_service)):
    user = raise_for_result(await accounts.register(payload))
    return RegisterResponse(user=RegisteredUser.model_validate(user))


@router.get("/check-email", response_model=EmailAvailability)
async def check_email(
    email: str = Query(..., min_length=1),
    accounts: RegistrationService = Depends(get_registration_service),
):
    return raise_for_result(await accounts.check_email(email))
