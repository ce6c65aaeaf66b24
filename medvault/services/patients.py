import logging
import uuid

from medvault.datastore import Datastore
from medvault.errors import DuplicateError, NotFoundError
from medvault.models.common import format_timestamp, utcnow
from medvault.models.patient import Patient, PatientCreate, PatientOut, PatientUpdate
from medvault.services import access
from medvault.services.auth import Caller
from medvault.services.references import provider_summaries
from medvault.services.users import user_summaries

logger = logging.getLogger(__name__)


async def find_patient_for_user(store: Datastore, user_id: str) -> dict | None:
    return await store.patients.find_one({"user": user_id})


async def own_patient_id(store: Datastore, caller: Caller) -> str | None:
    patient = await find_patient_for_user(store, caller.user_id)
    return patient["id"] if patient else None


async def present_patients(store: Datastore, docs: list[dict]) -> list[dict]:
    users = await user_summaries(store, [d.get("user") for d in docs])
    providers = await provider_summaries(store, [d.get("primaryProvider") for d in docs])
    return [
        PatientOut.model_validate(
            {
                **doc,
                "userInfo": users.get(doc.get("user")),
                "primaryProviderInfo": providers.get(doc.get("primaryProvider")),
            }
        ).to_document()
        for doc in docs
    ]


async def present_patient(store: Datastore, doc: dict) -> dict:
    return (await present_patients(store, [doc]))[0]


async def create_patient(store: Datastore, caller: Caller, payload: PatientCreate) -> dict:
    if await find_patient_for_user(store, caller.user_id):
        raise DuplicateError("Patient profile already exists for this user")

    patient = Patient(id=str(uuid.uuid4()), user=caller.user_id, **payload.model_dump())
    doc = await store.patients.insert_one(patient.to_document())
    logger.info("Created patient %s for user %s", doc["id"], caller.user_id)
    return await present_patient(store, doc)


async def list_patients(store: Datastore, caller: Caller) -> list[dict]:
    access.enforce(access.list_patients(caller), caller)
    return await present_patients(store, await store.patients.find())


async def get_my_patient(store: Datastore, caller: Caller) -> dict:
    doc = await find_patient_for_user(store, caller.user_id)
    if doc is None:
        raise NotFoundError("Patient profile not found")
    return await present_patient(store, doc)


async def get_patient(store: Datastore, caller: Caller, patient_id: str) -> dict:
    doc = await store.patients.find_by_id(patient_id)
    if doc is None:
        raise NotFoundError("Patient not found")
    access.enforce(access.read_patient(caller, doc), caller)
    return await present_patient(store, doc)


async def update_patient(store: Datastore, caller: Caller, patient_id: str, payload: PatientUpdate) -> dict:
    current = await store.patients.find_by_id(patient_id)
    if current is None:
        raise NotFoundError("Patient not found")
    access.enforce(access.update_profile(caller, current, "patient"), caller)

    changes = payload.to_changes()
    Patient.model_validate({**current, **changes})
    changes["updatedAt"] = format_timestamp(utcnow())

    doc = await store.patients.set_fields(patient_id, changes)
    if doc is None:
        raise NotFoundError("Patient not found")
    return await present_patient(store, doc)


async def delete_patient(store: Datastore, caller: Caller, patient_id: str) -> None:
    access.enforce(access.delete_profile(caller), caller)
    if await store.patients.delete_one(patient_id) is None:
        raise NotFoundError("Patient not found")
    logger.info("Deleted patient %s", patient_id)
