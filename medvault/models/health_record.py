from enum import Enum

from pydantic import Field

from medvault.models.common import CamelModel, ProfileRef, UTCDateTime, utcnow


class RecordType(str, Enum):
    CONSULTATION = "consultation"
    LAB_RESULT = "lab_result"
    PRESCRIPTION = "prescription"
    IMAGING = "imaging"
    PROCEDURE = "procedure"
    VACCINATION = "vaccination"
    VITAL_SIGNS = "vital_signs"
    NOTE = "note"
    REFERRAL = "referral"
    DISCHARGE_SUMMARY = "discharge_summary"


class RecordStatus(str, Enum):
    DRAFT = "draft"
    FINAL = "final"
    AMENDED = "amended"
    ENTERED_IN_ERROR = "entered_in_error"


class AccessAction(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DOWNLOAD = "download"


class BloodPressure(CamelModel):
    systolic: float | None = None
    diastolic: float | None = None


class Vitals(CamelModel):
    blood_pressure: BloodPressure | None = None
    heart_rate: float | None = None          # bpm
    temperature: float | None = None         # Fahrenheit
    weight: float | None = None              # lbs
    height: float | None = None              # inches
    oxygen_saturation: float | None = None   # percentage
    respiratory_rate: float | None = None    # breaths per minute


class LabResult(CamelModel):
    test_name: str | None = None
    value: str | None = None
    unit: str | None = None
    reference_range: str | None = None
    is_abnormal: bool | None = None


class Diagnosis(CamelModel):
    code: str | None = None  # ICD-10
    description: str | None = None
    is_primary: bool | None = None


class TreatmentMedication(CamelModel):
    name: str | None = None
    dosage: str | None = None
    frequency: str | None = None
    duration: str | None = None
    instructions: str | None = None


class TreatmentProcedure(CamelModel):
    code: str | None = None  # CPT
    description: str | None = None
    notes: str | None = None


class Treatment(CamelModel):
    medications: list[TreatmentMedication] = []
    procedures: list[TreatmentProcedure] = []
    instructions: str | None = None


class FollowUp(CamelModel):
    is_required: bool = False
    date: UTCDateTime | None = None
    notes: str | None = None


class Attachment(CamelModel):
    file_name: str | None = None
    file_type: str | None = None
    file_url: str | None = None
    uploaded_at: UTCDateTime = Field(default_factory=utcnow)


class AccessLogEntry(CamelModel):
    accessed_by: str
    accessed_at: UTCDateTime = Field(default_factory=utcnow)
    action: AccessAction


class HealthRecordFields(CamelModel):
    patient: str = Field(..., min_length=1)
    record_type: RecordType
    title: str = Field(..., min_length=1)
    description: str | None = None
    visit_date: UTCDateTime = Field(default_factory=utcnow)
    vitals: Vitals | None = None
    lab_results: list[LabResult] = []
    diagnosis: list[Diagnosis] = []
    treatment: Treatment | None = None
    follow_up: FollowUp = Field(default_factory=FollowUp)
    attachments: list[Attachment] = []
    is_confidential: bool = False
    status: RecordStatus = RecordStatus.FINAL


class HealthRecordCreate(HealthRecordFields):
    # Only honoured for admins; providers are always bound to their own profile
    provider: str | None = None


class HealthRecordUpdate(CamelModel):
    """Editable fields. ``patient``, ``provider`` and ``accessLog`` are not writable."""

    record_type: RecordType | None = None
    title: str | None = Field(None, min_length=1)
    description: str | None = None
    visit_date: UTCDateTime | None = None
    vitals: Vitals | None = None
    lab_results: list[LabResult] | None = None
    diagnosis: list[Diagnosis] | None = None
    treatment: Treatment | None = None
    follow_up: FollowUp | None = None
    attachments: list[Attachment] | None = None
    is_confidential: bool | None = None
    status: RecordStatus | None = None


class HealthRecord(HealthRecordFields):
    id: str
    provider: str
    access_log: list[AccessLogEntry] = []
    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)


class HealthRecordOut(HealthRecord):
    patient_info: ProfileRef | None = None
    provider_info: ProfileRef | None = None
