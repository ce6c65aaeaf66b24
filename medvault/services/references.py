"""Fill in referenced profiles on responses.

Each helper resolves a list of ids with one ``$in`` query per collection and
returns ``{id: summary}``; ids that no longer resolve are simply absent.
"""

from medvault.datastore import Collection, Datastore
from medvault.models.common import PatientSummary, ProfileRef, ProviderSummary
from medvault.services.users import user_summaries

NAME_FIELDS = {"first_name", "last_name"}
CONTACT_FIELDS = {"first_name", "last_name", "email"}


async def _fetch(collection: Collection, ids: list[str | None]) -> list[dict]:
    unique = sorted({i for i in ids if i})
    if not unique:
        return []
    return await collection.find({"id": {"$in": unique}})


async def profile_refs(
    store: Datastore,
    collection: Collection,
    ids: list[str | None],
    user_fields: set[str] = NAME_FIELDS,
) -> dict[str, dict]:
    docs = await _fetch(collection, ids)
    users = await user_summaries(store, [d.get("user") for d in docs], fields=user_fields)
    return {
        d["id"]: ProfileRef(id=d["id"], user_info=users.get(d.get("user"))).to_document()
        for d in docs
    }


async def provider_summaries(store: Datastore, ids: list[str | None]) -> dict[str, dict]:
    docs = await _fetch(store.providers, ids)
    users = await user_summaries(store, [d.get("user") for d in docs])
    return {
        d["id"]: ProviderSummary.model_validate({**d, "userInfo": users.get(d.get("user"))}).to_document()
        for d in docs
    }


async def patient_summaries(store: Datastore, ids: list[str | None]) -> dict[str, dict]:
    docs = await _fetch(store.patients, ids)
    users = await user_summaries(store, [d.get("user") for d in docs])
    return {
        d["id"]: PatientSummary.model_validate({**d, "userInfo": users.get(d.get("user"))}).to_document()
        for d in docs
    }
