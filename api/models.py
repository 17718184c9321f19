"""
API request and response models for the Wishlist identity REST endpoints.

Pydantic v2 models for everything that crosses the HTTP boundary.
They are intentionally separate from the dataclasses in auth/models.py, which
are the domain representation. Route handlers translate between the two.

Request models only enforce shape (types, required keys). Identity rules --
lengths, character sets, password complexity -- live in auth/validation.py so
they produce the structured field/rule errors clients rely on, not Pydantic's
generic 422.

No response model has a field for the password hash. That is the invariant
that keeps it off the wire.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from auth.models import Gender, User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/user-register."""

    username: str
    email: str
    password: str
    gender: str = ""


class UserUpdate(BaseModel):
    """Request body for POST /api/v1/update-user-profile.

    Every field is optional; omitted or null fields are left unchanged.
    """

    username: Optional[str] = None
    email: Optional[str] = None
    gender: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class VerificationRequest(BaseModel):
    email: str


class VerificationConfirm(BaseModel):
    email: str
    code: str


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Client-safe view of a User."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    gender: Gender
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Factory Method -- the mapping lives here, next to the output model."""
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            gender=user.gender,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "User created successfully"
    user: UserResponse


class TokenResponse(BaseModel):
    """Response for POST /api/v1/refresh-auth-token."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class LoginResponse(TokenResponse):
    """Response for POST /api/v1/user-login."""

    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class VerificationSentResponse(BaseModel):
    """Placeholder flow: code is only echoed back in debug mode."""

    model_config = ConfigDict(frozen=True)

    email: str
    expires_in_minutes: int
    code: Optional[str] = None


class VerificationConfirmedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    verified: bool


class DevUserResponse(BaseModel):
    """Response for the debug-only POST /api/v1/create-test-user."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    username: str
    password: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    field/rule are set for identity validation failures and conflicts only.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    field: Optional[str] = None
    rule: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
