from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import EmailStr, Field, computed_field, field_validator

from core.models.base import ApiModel, Document, UtcDatetime, utcnow

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"
PASSWORD_RULE = "Password must contain at least one uppercase letter, one lowercase letter, and one number"

DEFAULT_ROLE = "customer"
OWNER_ROLE = "owner"

LOCKED_MESSAGE = "Account is temporarily locked due to failed login attempts"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


def check_password_strength(value: str) -> str:
    if not (any(c.islower() for c in value) and any(c.isupper() for c in value) and any(c.isdigit() for c in value)):
        raise ValueError(PASSWORD_RULE)
    return value


class Address(ApiModel):
    street: str | None = None
    city: str = Field(..., min_length=2)
    state: str = Field(..., min_length=2)
    country: str = Field(..., min_length=2)
    zip_code: str = Field(..., min_length=3)


class EmergencyContact(ApiModel):
    name: str = Field(..., min_length=2)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    relationship: str = Field(..., min_length=2)


class Passport(ApiModel):
    number: str | None = None
    expiry_date: date | None = None
    issuing_country: str | None = None


class User(Document):
    first_name: str
    last_name: str
    email: str
    phone: str
    password: str
    date_of_birth: date | None = None
    gender: Gender | None = None
    nationality: str | None = None
    address: Address | None = None
    emergency_contact: EmergencyContact | None = None
    passport: Passport | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)
    role: str = DEFAULT_ROLE
    is_active: bool = True
    is_email_verified: bool = False
    login_attempts: int = 0
    lock_until: UtcDatetime | None = None
    last_login: UtcDatetime | None = None

    def is_locked_at(self, now: datetime) -> bool:
        return self.lock_until is not None and self.lock_until > now

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_locked(self) -> bool:
        return self.is_locked_at(utcnow())

    def register_failed_login(self, now: datetime, max_attempts: int, lock_time: timedelta) -> "User":
        """Count a failed login, locking the account once attempts reach the limit."""
        if self.lock_until is not None and self.lock_until <= now:
            return self.model_copy(update={"login_attempts": 1, "lock_until": None})

        attempts = self.login_attempts + 1
        lock_until = self.lock_until
        if attempts >= max_attempts and not self.is_locked_at(now):
            lock_until = now + lock_time
        return self.model_copy(update={"login_attempts": attempts, "lock_until": lock_until})

    def reset_login_attempts(self) -> "User":
        return self.model_copy(update={"login_attempts": 0, "lock_until": None})

    def public(self) -> dict[str, Any]:
        """Response view with credentials stripped."""
        return self.to_json(exclude={"password"})

    def without_credentials(self) -> "User":
        """Copy safe to carry on the request context. Never save it back."""
        return self.model_copy(update={"password": ""})


def profile_completion(user: User) -> int:
    """Percentage of profile fields that are filled in."""
    address = user.address
    fields = [
        user.first_name,
        user.last_name,
        user.email,
        user.phone,
        user.date_of_birth,
        user.gender,
        user.nationality,
        address.city if address else None,
        address.state if address else None,
        address.country if address else None,
        address.zip_code if address else None,
    ]
    completed = sum(1 for value in fields if value is not None and str(value).strip())
    return round(completed / len(fields) * 100)


# --- Request payloads ---


class RegisterRequest(ApiModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=8)
    date_of_birth: date
    gender: Gender
    nationality: str = Field(..., min_length=2)
    address: Address
    emergency_contact: EmergencyContact
    passport: Passport | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return check_password_strength(value)


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class ProfileUpdate(ApiModel):
    first_name: str | None = Field(None, min_length=2, max_length=50)
    last_name: str | None = Field(None, min_length=2, max_length=50)
    phone: str | None = Field(None, pattern=PHONE_PATTERN)
    nationality: str | None = Field(None, min_length=2)
    address: Address | None = None
    emergency_contact: EmergencyContact | None = None
    passport: Passport | None = None
    preferences: dict[str, Any] | None = None


class ChangePasswordRequest(ApiModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return check_password_strength(value)


class DeleteAccountRequest(ApiModel):
    password: str = Field(..., min_length=1)


class AdminUserUpdate(ApiModel):
    first_name: str | None = Field(None, min_length=2, max_length=50)
    last_name: str | None = Field(None, min_length=2, max_length=50)
    email: EmailStr | None = None
    phone: str | None = Field(None, pattern=PHONE_PATTERN)
    is_active: bool | None = None
    is_email_verified: bool | None = None
    role: str | None = Field(None, pattern=f"^({DEFAULT_ROLE}|{OWNER_ROLE})$")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return value.lower() if value else value
