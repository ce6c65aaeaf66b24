from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def to_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_timestamp(value: datetime) -> str:
    # Fixed-width so stored strings sort chronologically
    return to_utc(value).strftime(TIMESTAMP_FORMAT)


def utcnow() -> datetime:
    return datetime.now(UTC)


UTCDateTime = Annotated[
    datetime,
    AfterValidator(to_utc),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]


class CamelModel(BaseModel):
    """Base for every document and payload: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_document(self, **kwargs: Any) -> dict:
        return self.model_dump(mode="json", by_alias=True, **kwargs)

    def to_changes(self) -> dict:
        """Top-level fields the client actually sent, nested values dumped whole."""
        sent = {to_camel(name) for name in self.model_fields_set}
        return {k: v for k, v in self.to_document().items() if k in sent}


class UserSummary(CamelModel):
    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None


class ProfileRef(CamelModel):
    """A referenced patient or provider carrying only its owner's name fields."""

    id: str
    user_info: dict | None = None


class PatientSummary(CamelModel):
    id: str
    date_of_birth: str | None = None
    gender: str | None = None
    blood_type: str | None = None
    user_info: UserSummary | None = None


class ProviderSummary(CamelModel):
    id: str
    specialty: str | None = None
    practice_address: dict | None = None
    accepting_new_patients: bool | None = None
    user_info: UserSummary | None = None


def envelope(data: Any = None, *, count: int | None = None, message: str | None = None) -> dict:
    """Build the uniform ``{success, data, count, message}`` response body."""
    body: dict[str, Any] = {"success": True}
    if count is not None:
        body["count"] = count
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body
