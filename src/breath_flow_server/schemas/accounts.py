"""Pydantic schemas for accounts, profiles, feedback and reminders."""

from pydantic import BaseModel, Field, model_validator

from breath_flow_server.core.password import MIN_PASSWORD_LENGTH


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=256)


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=256)


class AuthResponse(BaseModel):
    """Issued bearer key. Shown once; only its hash is stored."""

    user_id: str
    name: str
    email: str
    api_key: str = Field(description="Send as 'Authorization: Bearer <key>'")


class ReminderRequest(BaseModel):
    time: str = Field(description="Wall-clock time HH:MM (24-hour) in the server's stats timezone")
    days: list[str] | None = Field(default=None, description="Weekdays Mon..Sun; all when omitted")
    enabled: bool = True
    via_email: bool = False


class ProfileUpdateRequest(BaseModel):
    """Fields to change; omitted fields are left alone."""

    name: str | None = Field(default=None, min_length=1, max_length=50)
    email: str | None = Field(
        default=None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
    )
    phone: str | None = Field(default=None, max_length=20)
    location: str | None = Field(default=None, max_length=100)
    avatar: str | None = Field(default=None, max_length=500)


class PreferencesRequest(BaseModel):
    notifications: bool | None = None
    daily_reminders: bool | None = None
    achievement_alerts: bool | None = None
    email_updates: bool | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=256)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=256)
    confirm_password: str = Field(min_length=1, max_length=256)

    @model_validator(mode="after")
    def passwords_match(self) -> "ChangePasswordRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class FeedbackRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    feedback: str = Field(min_length=1, max_length=500)
