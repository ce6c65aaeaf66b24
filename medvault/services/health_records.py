import logging
import uuid
from datetime import datetime

from medvault.config import RESTRICT_PROVIDER_PATIENT_QUERIES
from medvault.datastore import DESCENDING, Datastore
from medvault.errors import NotFoundError, ValidationError
from medvault.models.common import format_timestamp, to_utc, utcnow
from medvault.models.health_record import (
    AccessAction,
    HealthRecord,
    HealthRecordCreate,
    HealthRecordOut,
    HealthRecordUpdate,
    RecordType,
)
from medvault.models.user import UserRole
from medvault.services import access, lifecycle
from medvault.services.auth import Caller
from medvault.services.patients import own_patient_id
from medvault.services.providers import assigned_patient_ids, own_provider_id
from medvault.services.references import CONTACT_FIELDS, NAME_FIELDS, profile_refs

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("visitDate", DESCENDING)]


async def present_records(store: Datastore, docs: list[dict], patient_fields: set[str] = NAME_FIELDS) -> list[dict]:
    """Records with the patient and provider names filled in."""
    patients = await profile_refs(store, store.patients, [d.get("patient") for d in docs], patient_fields)
    providers = await profile_refs(store, store.providers, [d.get("provider") for d in docs])
    return [
        HealthRecordOut.model_validate(
            {
                **doc,
                "patientInfo": patients.get(doc.get("patient")),
                "providerInfo": providers.get(doc.get("provider")),
            }
        ).to_document()
        for doc in docs
    ]


async def present_record(store: Datastore, doc: dict, patient_fields: set[str] = NAME_FIELDS) -> dict:
    return (await present_records(store, [doc], patient_fields))[0]


def parse_date_param(value: str | None, name: str) -> datetime | None:
    if not value:
        return None
    try:
        return to_utc(datetime.fromisoformat(value))
    except ValueError:
        raise ValidationError(f"Invalid {name}: expected an ISO 8601 date") from None


async def create_record(store: Datastore, caller: Caller, payload: HealthRecordCreate) -> dict:
    provider_id = access.resolve_record_provider(
        caller, await own_provider_id(store, caller), payload.provider
    )
    if await store.patients.find_by_id(payload.patient) is None:
        raise NotFoundError("Patient not found")
    if caller.is_admin and await store.providers.find_by_id(provider_id) is None:
        raise NotFoundError("Provider not found")

    fields = payload.model_dump(exclude={"provider"})
    record = HealthRecord(id=str(uuid.uuid4()), provider=provider_id, **fields)
    doc = await store.health_records.insert_one(record.to_document())
    logger.info("Created health record %s for patient %s by provider %s", doc["id"], doc["patient"], provider_id)
    return await present_record(store, doc)


async def list_records(
    store: Datastore,
    caller: Caller,
    record_type: RecordType | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    patient_id: str | None = None,
) -> list[dict]:
    start = parse_date_param(start_date, "startDate")
    end = parse_date_param(end_date, "endDate")

    patient_ref = await own_patient_id(store, caller) if caller.role == UserRole.PATIENT else None
    provider_ref = await own_provider_id(store, caller) if caller.role == UserRole.PROVIDER else None
    assigned = None
    if RESTRICT_PROVIDER_PATIENT_QUERIES and caller.role == UserRole.PROVIDER and patient_id:
        assigned = await assigned_patient_ids(store, provider_ref)

    decision = access.list_health_records(
        caller,
        own_patient_id=patient_ref,
        own_provider_id=provider_ref,
        patient_id_param=patient_id,
        assigned_patient_ids=assigned,
        restrict_provider_queries=RESTRICT_PROVIDER_PATIENT_QUERIES,
    )
    filter = dict(access.enforce(decision, caller))

    if record_type:
        filter["recordType"] = RecordType(record_type).value
    if start or end:
        bounds = {}
        if start:
            bounds["$gte"] = start
        if end:
            bounds["$lte"] = end
        filter["visitDate"] = bounds

    docs = await store.health_records.find(filter, sort=NEWEST_FIRST)
    return await present_records(store, docs)


async def get_record(store: Datastore, caller: Caller, record_id: str) -> dict:
    doc = await store.health_records.find_by_id(record_id)
    if doc is None:
        raise NotFoundError("Health record not found")

    patient_ref = await own_patient_id(store, caller) if caller.role == UserRole.PATIENT else None
    access.enforce(access.read_health_record(caller, doc, patient_ref), caller)

    logged = await lifecycle.log_access(store.health_records, record_id, caller.user_id, AccessAction.VIEW)
    return await present_record(store, logged or doc, CONTACT_FIELDS)


async def update_record(store: Datastore, caller: Caller, record_id: str, payload: HealthRecordUpdate) -> dict:
    current = await store.health_records.find_by_id(record_id)
    if current is None:
        raise NotFoundError("Health record not found")

    provider_ref = await own_provider_id(store, caller) if caller.role == UserRole.PROVIDER else None
    access.enforce(access.update_health_record(caller, current, provider_ref), caller)

    changes = lifecycle.apply_amendment(current, payload.to_changes())
    HealthRecord.model_validate({**current, **changes})
    changes["updatedAt"] = format_timestamp(utcnow())

    if await store.health_records.set_fields(record_id, changes) is None:
        raise NotFoundError("Health record not found")
    doc = await lifecycle.log_access(store.health_records, record_id, caller.user_id, AccessAction.EDIT)
    if doc is None:
        raise NotFoundError("Health record not found")
    return await present_record(store, doc)


async def delete_record(store: Datastore, caller: Caller, record_id: str) -> None:
    """Soft delete: the record stays and is marked ``entered_in_error``."""
    access.enforce(access.delete_health_record(caller), caller)
    doc = await store.health_records.set_fields(record_id, lifecycle.soft_delete_changes())
    if doc is None:
        raise NotFoundError("Health record not found")
    logger.info("Health record %s marked entered_in_error by %s", record_id, caller.user_id)


async def list_patient_records(store: Datastore, caller: Caller, patient_id: str) -> list[dict]:
    patient_ref = await own_patient_id(store, caller) if caller.role == UserRole.PATIENT else None
    access.enforce(access.list_patient_health_records(caller, patient_id, patient_ref), caller)

    docs = await store.health_records.find({"patient": patient_id}, sort=NEWEST_FIRST)
    return await present_records(store, docs)
