"""
API request and response models for PrefTrack REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
prefs/models.py, which own the internal domain representation. Route handlers
map between the two.

Credential fields on the request models are Optional with loose bounds on
purpose: presence, username length and password policy are checked by
AuthService so that every credential problem produces the same 400
{status: "fail", message} shape with a specific message, instead of a
generic validation error.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prefs.models import MAX_DREAM_JOB_LENGTH, MAX_DREAMS_LENGTH, MAX_SUBJECT_LENGTH

_Subject = Annotated[str, Field(max_length=MAX_SUBJECT_LENGTH)]


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register. Any extra "role" key is ignored."""

    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/change-password.

    Accepts the browser client's camelCase keys and snake_case equivalents.
    """

    model_config = ConfigDict(populate_by_name=True)

    current_password: Optional[str] = Field(default=None, alias="currentPassword", max_length=255)
    new_password: Optional[str] = Field(default=None, alias="newPassword", max_length=255)
    confirm_new_password: Optional[str] = Field(default=None, alias="confirmNewPassword", max_length=255)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public view of an identity. Never carries a password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: str


class AuthResponse(BaseModel):
    """Response for successful register and login."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    token: str
    expires_at: str
    user: UserOut


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    user: UserOut


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    message: str


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


class PreferencesUpdate(BaseModel):
    """Request body for POST /api/v1/students/preferences."""

    model_config = ConfigDict(populate_by_name=True)

    favorite_subjects: list[_Subject] = Field(alias="favoriteSubjects", max_length=50)
    dreams: str = Field(max_length=MAX_DREAMS_LENGTH)
    dream_job: str = Field(max_length=MAX_DREAM_JOB_LENGTH)

    @field_validator("favorite_subjects")
    @classmethod
    def normalize_subjects(cls, values: list[str]) -> list[str]:
        """Strip, drop blanks, and deduplicate subjects while preserving order."""
        seen: set[str] = set()
        result: list[str] = []
        for v in values:
            subject = v.strip()
            if subject and subject not in seen:
                seen.add(subject)
                result.append(subject)
        return result


class PreferencesOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    favorite_subjects: list[str]
    dreams: str
    dream_job: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PreferencesResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    message: Optional[str] = None
    data: PreferencesOut


class StudentRow(BaseModel):
    """One row of the teacher dashboard."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    favorite_subjects: list[str]
    dreams: Optional[str]
    dream_job: Optional[str]
    preferences_created_at: Optional[str]
    preferences_updated_at: Optional[str]


class StudentList(BaseModel):
    model_config = ConfigDict(frozen=True)

    students: list[StudentRow]


class DashboardResponse(BaseModel):
    """Response for GET /api/v1/teachers/dashboard."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    results: int
    data: StudentList


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Envelope returned on every 4xx/5xx response.

    status is "fail" for client errors and "error" for server errors.
    """

    model_config = ConfigDict(frozen=True)

    status: str
    code: str
    message: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
