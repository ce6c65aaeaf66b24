from pydantic import Field, computed_field

from medvault.models.common import CamelModel, PatientSummary, UserSummary, UTCDateTime, utcnow


class Qualification(CamelModel):
    degree: str | None = None
    institution: str | None = None
    year: int | None = None


class PracticeAddress(CamelModel):
    facility_name: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str = "USA"


class DaySchedule(CamelModel):
    start: str | None = None
    end: str | None = None
    is_available: bool | None = None


class WorkingHours(CamelModel):
    monday: DaySchedule | None = None
    tuesday: DaySchedule | None = None
    wednesday: DaySchedule | None = None
    thursday: DaySchedule | None = None
    friday: DaySchedule | None = None
    saturday: DaySchedule | None = None
    sunday: DaySchedule | None = None


class ProviderFields(CamelModel):
    specialty: str = Field(..., min_length=1)
    license_number: str = Field(..., min_length=1)
    license_state: str = Field(..., min_length=1)
    license_expiration: UTCDateTime
    npi: str | None = None
    qualifications: list[Qualification] = []
    practice_address: PracticeAddress | None = None
    working_hours: WorkingHours | None = None
    accepting_new_patients: bool = True
    languages: list[str] = []


class ProviderCreate(ProviderFields):
    pass


class ProviderUpdate(CamelModel):
    specialty: str | None = Field(None, min_length=1)
    license_number: str | None = Field(None, min_length=1)
    license_state: str | None = Field(None, min_length=1)
    license_expiration: UTCDateTime | None = None
    npi: str | None = None
    qualifications: list[Qualification] | None = None
    practice_address: PracticeAddress | None = None
    working_hours: WorkingHours | None = None
    accepting_new_patients: bool | None = None
    languages: list[str] | None = None


class AssignPatient(CamelModel):
    patient_id: str = Field(..., min_length=1)


class Provider(ProviderFields):
    id: str
    user: str
    patients: list[str] = []
    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)


class ProviderOut(Provider):
    user_info: UserSummary | None = None
    patients_info: list[PatientSummary] | None = None

    @computed_field(alias="isLicenseValid")
    @property
    def is_license_valid(self) -> bool:
        return self.license_expiration > utcnow()
