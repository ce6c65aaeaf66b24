from enum import Enum

from pydantic import ConfigDict, EmailStr, Field

from medvault.models.common import CamelModel, UTCDateTime, utcnow


class UserRole(str, Enum):
    PATIENT = "patient"
    PROVIDER = "provider"
    ADMIN = "admin"


class User(CamelModel):
    """Stored user document. ``password`` holds a hash and never leaves the service."""

    id: str
    email: EmailStr
    first_name: str = ""
    last_name: str = ""
    phone: str | None = None
    role: UserRole = UserRole.PATIENT
    password: str | None = None
    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)


class UserOut(CamelModel):
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    phone: str | None = None
    role: UserRole
    created_at: UTCDateTime | None = None
    updated_at: UTCDateTime | None = None


class UserUpdate(CamelModel):
    model_config = ConfigDict(extra="ignore")

    email: EmailStr | None = None
    first_name: str | None = Field(None, min_length=1)
    last_name: str | None = Field(None, min_length=1)
    phone: str | None = None
    role: UserRole | None = None
    password: str | None = None
