from fastapi import APIRouter, Depends, Query

from medvault.datastore import Datastore, get_datastore
from medvault.models.common import envelope
from medvault.models.health_record import HealthRecordCreate, HealthRecordUpdate, RecordType
from medvault.models.user import UserRole
from medvault.services import health_records
from medvault.services.auth import Caller, authorize, get_current_caller

router = APIRouter(prefix="/health-records", tags=["health-records"])


@router.post("", status_code=201)
async def create_health_record(
    body: HealthRecordCreate,
    caller: Caller = Depends(authorize(UserRole.PROVIDER, UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    """Create a health record. Providers are bound to their own profile."""
    return envelope(await health_records.create_record(store, caller, body))


@router.get("")
async def list_health_records(
    record_type: RecordType | None = Query(None, alias="recordType"),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    patient_id: str | None = Query(None, alias="patientId"),
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    """List records visible to the caller, newest visit first.

    Date bounds are inclusive and apply to ``visitDate``.
    """
    records = await health_records.list_records(
        store,
        caller,
        record_type=record_type,
        start_date=start_date,
        end_date=end_date,
        patient_id=patient_id,
    )
    return envelope(records, count=len(records))


@router.get("/patient/{patient_id}")
async def list_records_for_patient(
    patient_id: str,
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    records = await health_records.list_patient_records(store, caller, patient_id)
    return envelope(records, count=len(records))


@router.get("/{record_id}")
async def get_health_record(
    record_id: str,
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    """Read one record; every successful read is written to its access log."""
    return envelope(await health_records.get_record(store, caller, record_id))


@router.put("/{record_id}")
async def update_health_record(
    record_id: str,
    body: HealthRecordUpdate,
    caller: Caller = Depends(authorize(UserRole.PROVIDER, UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    return envelope(await health_records.update_record(store, caller, record_id, body))


@router.delete("/{record_id}")
async def delete_health_record(
    record_id: str,
    caller: Caller = Depends(authorize(UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    await health_records.delete_record(store, caller, record_id)
    return envelope(message="Health record marked as entered in error")
