import logging
import uuid

from medvault.datastore import Datastore
from medvault.errors import DuplicateError, NotFoundError
from medvault.models.common import format_timestamp, utcnow
from medvault.models.provider import Provider, ProviderCreate, ProviderOut, ProviderUpdate
from medvault.services import access
from medvault.services.auth import Caller
from medvault.services.references import patient_summaries
from medvault.services.users import user_summaries

logger = logging.getLogger(__name__)


async def find_provider_for_user(store: Datastore, user_id: str) -> dict | None:
    return await store.providers.find_one({"user": user_id})


async def own_provider_id(store: Datastore, caller: Caller) -> str | None:
    provider = await find_provider_for_user(store, caller.user_id)
    return provider["id"] if provider else None


async def present_providers(store: Datastore, docs: list[dict], with_patients: bool = False) -> list[dict]:
    users = await user_summaries(store, [d.get("user") for d in docs])
    patients: dict[str, dict] = {}
    if with_patients:
        patients = await patient_summaries(store, [p for d in docs for p in d.get("patients", [])])
    out = []
    for doc in docs:
        extra: dict = {"userInfo": users.get(doc.get("user"))}
        if with_patients:
            extra["patientsInfo"] = [patients[p] for p in doc.get("patients", []) if p in patients]
        out.append(ProviderOut.model_validate({**doc, **extra}).to_document())
    return out


async def present_provider(store: Datastore, doc: dict, with_patients: bool = False) -> dict:
    return (await present_providers(store, [doc], with_patients))[0]


async def create_provider(store: Datastore, caller: Caller, payload: ProviderCreate) -> dict:
    access.enforce(access.create_provider_profile(caller), caller)
    if await find_provider_for_user(store, caller.user_id):
        raise DuplicateError("Provider profile already exists for this user")

    provider = Provider(id=str(uuid.uuid4()), user=caller.user_id, **payload.model_dump())
    doc = await store.providers.insert_one(provider.to_document())
    logger.info("Created provider %s for user %s", doc["id"], caller.user_id)
    return await present_provider(store, doc)


async def list_providers(
    store: Datastore,
    specialty: str | None = None,
    accepting_new_patients: bool | None = None,
) -> list[dict]:
    """Public directory listing; ``specialty`` is a case-insensitive substring match."""
    filter: dict = {}
    if specialty:
        filter["specialty"] = {"$icontains": specialty}
    if accepting_new_patients is not None:
        filter["acceptingNewPatients"] = accepting_new_patients
    return await present_providers(store, await store.providers.find(filter))


async def get_my_provider(store: Datastore, caller: Caller) -> dict:
    doc = await find_provider_for_user(store, caller.user_id)
    if doc is None:
        raise NotFoundError("Provider profile not found")
    return await present_provider(store, doc, with_patients=True)


async def get_provider(store: Datastore, provider_id: str) -> dict:
    doc = await store.providers.find_by_id(provider_id)
    if doc is None:
        raise NotFoundError("Provider not found")
    return await present_provider(store, doc)


async def update_provider(store: Datastore, caller: Caller, provider_id: str, payload: ProviderUpdate) -> dict:
    current = await store.providers.find_by_id(provider_id)
    if current is None:
        raise NotFoundError("Provider not found")
    access.enforce(access.update_profile(caller, current, "provider"), caller)

    changes = payload.to_changes()
    Provider.model_validate({**current, **changes})
    changes["updatedAt"] = format_timestamp(utcnow())

    doc = await store.providers.set_fields(provider_id, changes)
    if doc is None:
        raise NotFoundError("Provider not found")
    return await present_provider(store, doc)


async def delete_provider(store: Datastore, caller: Caller, provider_id: str) -> None:
    access.enforce(access.delete_profile(caller), caller)
    if await store.providers.delete_one(provider_id) is None:
        raise NotFoundError("Provider not found")
    logger.info("Deleted provider %s", provider_id)


async def assign_patient(store: Datastore, caller: Caller, provider_id: str, patient_id: str) -> dict:
    access.enforce(access.assign_patient(caller), caller)
    if await store.providers.find_by_id(provider_id) is None:
        raise NotFoundError("Provider not found")
    if await store.patients.find_by_id(patient_id) is None:
        raise NotFoundError("Patient not found")

    doc = await store.providers.push_unique(provider_id, "patients", patient_id)
    if doc is None:
        if await store.providers.find_by_id(provider_id) is None:
            raise NotFoundError("Provider not found")
        raise DuplicateError("Patient already assigned to this provider")
    logger.info("Assigned patient %s to provider %s", patient_id, provider_id)
    return await present_provider(store, doc)


async def assigned_patient_ids(store: Datastore, provider_id: str | None) -> list[str]:
    """Patients on the provider's list plus those naming them as primary provider."""
    if not provider_id:
        return []
    provider = await store.providers.find_by_id(provider_id)
    ids = list(provider.get("patients", [])) if provider else []
    primary = await store.patients.find({"primaryProvider": provider_id})
    ids.extend(p["id"] for p in primary)
    return ids
