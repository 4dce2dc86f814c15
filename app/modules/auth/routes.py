from fastapi import APIRouter, Depends, HTTPException
from app.modules.auth.schemas import (
    LoginRequest, LoginResponse, RegisterRequest, RegisterResponse, AuthState, AuthStateResponse
)
from app.modules.auth.service import AuthStore
from app.core.dependencies import get_auth_store, get_current_token, holds_session, require_authenticated
from typing import Optional

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    auth_store: AuthStore = Depends(get_auth_store)
):
    """Sign in, resolve the profile and return the bearer token for later calls"""
    result = await auth_store.sign_in(login_data.email, login_data.password)
    if not result.ok:
        raise HTTPException(status_code=401, detail=result.error)
    state = auth_store.state()
    if state.session is None or not state.session.access_token:
        raise HTTPException(status_code=401, detail="Session ended during sign-in")
    return LoginResponse(
        access_token=state.session.access_token,
        **AuthStateResponse.from_state(state).model_dump()
    )


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    auth_store: AuthStore = Depends(get_auth_store)
):
    """Request a new account; the user signs in once the email is confirmed"""
    result = await auth_store.sign_up(
        register_data.email,
        register_data.password,
        register_data.full_name,
        register_data.role.value,
    )
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error)
    return RegisterResponse(
        email=register_data.email,
        message="Account created. Check your email to confirm it, then sign in."
    )


@router.post("/logout", status_code=200)
async def logout(auth_store: AuthStore = Depends(require_authenticated)):
    """Sign out; local state is cleared even if the remote call fails"""
    await auth_store.sign_out()
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=AuthStateResponse)
async def get_current_user(
    token: Optional[str] = Depends(get_current_token),
    auth_store: AuthStore = Depends(get_auth_store)
):
    """Session and profile for the token holder; other callers only see the loading flag"""
    if holds_session(auth_store, token):
        return AuthStateResponse.from_state(auth_store.state())
    return AuthStateResponse.from_state(AuthState(loading=auth_store.loading))


@router.post("/profile/refresh", response_model=AuthStateResponse)
async def refresh_profile(auth_store: AuthStore = Depends(require_authenticated)):
    await auth_store.refresh_profile()
    return AuthStateResponse.from_state(auth_store.state())
