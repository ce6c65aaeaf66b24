from fastapi import APIRouter, Depends, Query

from medvault.datastore import Datastore, get_datastore
from medvault.models.common import envelope
from medvault.models.provider import AssignPatient, ProviderCreate, ProviderUpdate
from medvault.models.user import UserRole
from medvault.services import providers
from medvault.services.auth import Caller, authorize, get_current_caller

router = APIRouter(prefix="/providers", tags=["providers"])


@router.post("", status_code=201)
async def create_provider(
    body: ProviderCreate,
    caller: Caller = Depends(authorize(UserRole.PROVIDER, UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    return envelope(await providers.create_provider(store, caller, body))


@router.get("")
async def list_providers(
    specialty: str | None = None,
    accepting_new_patients: str | None = Query(None, alias="acceptingNewPatients"),
    store: Datastore = Depends(get_datastore),
):
    """Public "find a doctor" listing; no credentials required."""
    accepting = None
    if accepting_new_patients is not None:
        accepting = accepting_new_patients.lower() == "true"
    docs = await providers.list_providers(store, specialty=specialty, accepting_new_patients=accepting)
    return envelope(docs, count=len(docs))


@router.get("/me")
async def get_my_provider(
    caller: Caller = Depends(authorize(UserRole.PROVIDER, UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    return envelope(await providers.get_my_provider(store, caller))


@router.get("/{provider_id}")
async def get_provider(provider_id: str, store: Datastore = Depends(get_datastore)):
    return envelope(await providers.get_provider(store, provider_id))


@router.put("/{provider_id}")
async def update_provider(
    provider_id: str,
    body: ProviderUpdate,
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    return envelope(await providers.update_provider(store, caller, provider_id, body))


@router.delete("/{provider_id}")
async def delete_provider(
    provider_id: str,
    caller: Caller = Depends(authorize(UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    await providers.delete_provider(store, caller, provider_id)
    return envelope(message="Provider profile deleted successfully")


@router.post("/{provider_id}/patients")
async def assign_patient(
    provider_id: str,
    body: AssignPatient,
    caller: Caller = Depends(authorize(UserRole.PROVIDER, UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    """Add a patient to the provider's list; assigning twice is rejected."""
    return envelope(await providers.assign_patient(store, caller, provider_id, body.patient_id))
