from datetime import date
from enum import Enum

from pydantic import Field, computed_field

from medvault.models.common import CamelModel, ProviderSummary, UserSummary, UTCDateTime, utcnow


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer_not_to_say"


class BloodType(str, Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"
    UNKNOWN = "unknown"


class AllergySeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class ConditionStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    CHRONIC = "chronic"


class Address(CamelModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str = "USA"


class EmergencyContact(CamelModel):
    name: str | None = None
    relationship: str | None = None
    phone: str | None = None


class Insurance(CamelModel):
    provider: str | None = None
    policy_number: str | None = None
    group_number: str | None = None
    expiration_date: UTCDateTime | None = None


class Allergy(CamelModel):
    name: str | None = None
    severity: AllergySeverity | None = None
    notes: str | None = None


class Medication(CamelModel):
    name: str | None = None
    dosage: str | None = None
    frequency: str | None = None
    prescribed_by: str | None = None  # Provider id
    start_date: UTCDateTime | None = None
    end_date: UTCDateTime | None = None
    is_active: bool = True


class MedicalCondition(CamelModel):
    name: str | None = None
    diagnosed_date: UTCDateTime | None = None
    status: ConditionStatus = ConditionStatus.ACTIVE
    notes: str | None = None


def calculate_age(date_of_birth: date, today: date | None = None) -> int:
    """Whole years since birth; a birthday not yet reached this year doesn't count."""
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


class PatientFields(CamelModel):
    date_of_birth: date
    gender: Gender | None = None
    blood_type: BloodType = BloodType.UNKNOWN
    address: Address | None = None
    emergency_contact: EmergencyContact | None = None
    insurance: Insurance | None = None
    allergies: list[Allergy] = []
    medications: list[Medication] = []
    medical_conditions: list[MedicalCondition] = []
    primary_provider: str | None = None


class PatientCreate(PatientFields):
    pass


class PatientUpdate(CamelModel):
    date_of_birth: date | None = None
    gender: Gender | None = None
    blood_type: BloodType | None = None
    address: Address | None = None
    emergency_contact: EmergencyContact | None = None
    insurance: Insurance | None = None
    allergies: list[Allergy] | None = None
    medications: list[Medication] | None = None
    medical_conditions: list[MedicalCondition] | None = None
    primary_provider: str | None = None


class Patient(PatientFields):
    id: str
    user: str
    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)


class PatientOut(Patient):
    user_info: UserSummary | None = None
    primary_provider_info: ProviderSummary | None = None

    @computed_field
    @property
    def age(self) -> int:
        return calculate_age(self.date_of_birth)
