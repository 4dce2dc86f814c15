from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class AuthSession(BaseModel):
    """Authenticated principal as handed back by Supabase Auth."""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    access_token: Optional[str] = None

    @property
    def metadata_role(self) -> Optional[UserRole]:
        """Role requested at sign-up, if it is one we know about."""
        raw = self.user_metadata.get("role")
        if not raw:
            return None
        try:
            return UserRole(raw)
        except ValueError:
            return None

    @property
    def metadata_full_name(self) -> Optional[str]:
        return self.user_metadata.get("full_name") or None


class Profile(BaseModel):
    id: str
    email: str = ""
    full_name: Optional[str] = None
    role: UserRole = UserRole.USER
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def without_timestamps(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"created_at", "updated_at"})

    @classmethod
    def fallback_for(cls, session: AuthSession) -> "Profile":
        """Non-persisted profile built only from session metadata."""
        now = datetime.now(timezone.utc)
        return cls(
            id=session.id,
            email=session.email or "",
            full_name=session.metadata_full_name or session.email or None,
            role=session.metadata_role or UserRole.USER,
            avatar_url=None,
            created_at=now,
            updated_at=now,
        )


class AuthResult(BaseModel):
    """Outcome of a sign-in or sign-up; error carries the user-facing message."""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AuthState(BaseModel):
    session: Optional[AuthSession] = None
    profile: Optional[Profile] = None
    loading: bool = True


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str
    role: UserRole = UserRole.USER


class RegisterResponse(BaseModel):
    email: str
    message: str


class SessionResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)


class AuthStateResponse(BaseModel):
    authenticated: bool
    loading: bool
    session: Optional[SessionResponse] = None
    profile: Optional[Profile] = None

    @classmethod
    def from_state(cls, state: AuthState) -> "AuthStateResponse":
        session = None
        if state.session is not None:
            session = SessionResponse(
                user_id=state.session.id,
                email=state.session.email,
                user_metadata=state.session.user_metadata,
            )
        return cls(
            authenticated=state.session is not None,
            loading=state.loading,
            session=session,
            profile=state.profile,
        )


class LoginResponse(AuthStateResponse):
    access_token: str
    token_type: str = "bearer"
