from fastapi import APIRouter, Depends

from medvault.datastore import Datastore, get_datastore
from medvault.models.common import envelope
from medvault.models.patient import PatientCreate, PatientUpdate
from medvault.models.user import UserRole
from medvault.services import patients
from medvault.services.auth import Caller, authorize, get_current_caller

router = APIRouter(prefix="/patients", tags=["patients"])


@router.post("", status_code=201)
async def create_patient(
    body: PatientCreate,
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    """Create the caller's own patient profile (one per user)."""
    return envelope(await patients.create_patient(store, caller, body))


@router.get("")
async def list_patients(
    caller: Caller = Depends(authorize(UserRole.PROVIDER, UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    docs = await patients.list_patients(store, caller)
    return envelope(docs, count=len(docs))


@router.get("/me")
async def get_my_patient(
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    return envelope(await patients.get_my_patient(store, caller))


@router.get("/{patient_id}")
async def get_patient(
    patient_id: str,
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    """Providers and admins may read any patient; patients only themselves."""
    return envelope(await patients.get_patient(store, caller, patient_id))


@router.put("/{patient_id}")
async def update_patient(
    patient_id: str,
    body: PatientUpdate,
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    return envelope(await patients.update_patient(store, caller, patient_id, body))


@router.delete("/{patient_id}")
async def delete_patient(
    patient_id: str,
    caller: Caller = Depends(authorize(UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    await patients.delete_patient(store, caller, patient_id)
    return envelope(message="Patient profile deleted successfully")
