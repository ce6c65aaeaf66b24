import logging
import uuid

from medvault.datastore import Datastore
from medvault.errors import NotFoundError
from medvault.models.common import UserSummary, format_timestamp, utcnow
from medvault.models.user import User, UserOut, UserRole, UserUpdate
from medvault.services import access
from medvault.services.auth import Caller

logger = logging.getLogger(__name__)


def present_user(doc: dict) -> dict:
    """Public view of a stored user; the password hash is never included."""
    return UserOut.model_validate(doc).to_document()


async def user_summaries(
    store: Datastore, user_ids: list[str | None], fields: set[str] | None = None
) -> dict[str, dict]:
    """Fetch ``{id: summary}`` for the given users in one query.

    ``fields`` narrows each summary to ``id`` plus the named attributes.
    """
    ids = sorted({uid for uid in user_ids if uid})
    if not ids:
        return {}
    docs = await store.users.find({"id": {"$in": ids}})
    include = {"id", *fields} if fields else None
    return {doc["id"]: UserSummary.model_validate(doc).to_document(include=include) for doc in docs}


async def create_user(
    store: Datastore,
    email: str,
    role: UserRole = UserRole.PATIENT,
    first_name: str = "",
    last_name: str = "",
    phone: str | None = None,
    password_hash: str | None = None,
) -> dict:
    """Store a user record; used by the identity service integration and seeding."""
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        role=role,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        password=password_hash,
    )
    doc = await store.users.insert_one(user.to_document())
    logger.info("Created user %s with role %s", doc["id"], UserRole(role).value)
    return doc


async def list_users(store: Datastore, caller: Caller) -> list[dict]:
    access.enforce(access.list_users(caller), caller)
    return [present_user(doc) for doc in await store.users.find()]


async def get_user(store: Datastore, caller: Caller, user_id: str) -> dict:
    doc = await store.users.find_by_id(user_id)
    if doc is None:
        raise NotFoundError("User not found")
    access.enforce(access.access_user(caller, user_id, "view"), caller)
    return present_user(doc)


async def update_user(store: Datastore, caller: Caller, user_id: str, payload: UserUpdate) -> dict:
    access.enforce(access.access_user(caller, user_id, "update"), caller)
    changes = access.sanitize_user_update(caller, payload.to_changes())

    current = await store.users.find_by_id(user_id)
    if current is None:
        raise NotFoundError("User not found")
    User.model_validate({**current, **changes})

    changes["updatedAt"] = format_timestamp(utcnow())
    doc = await store.users.set_fields(user_id, changes)
    if doc is None:
        raise NotFoundError("User not found")
    if "role" in changes:
        logger.info("User %s role changed to %s by %s", user_id, changes["role"], caller.user_id)
    return present_user(doc)


async def delete_user(store: Datastore, caller: Caller, user_id: str) -> None:
    access.enforce(access.delete_user(caller), caller)
    if await store.users.delete_one(user_id) is None:
        raise NotFoundError("User not found")
    logger.info("Deleted user %s", user_id)
