from fastapi import APIRouter, Depends

from medvault.datastore import Datastore, get_datastore
from medvault.models.common import envelope
from medvault.models.user import UserRole, UserUpdate
from medvault.services import users
from medvault.services.auth import Caller, authorize, get_current_caller

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
async def list_users(
    caller: Caller = Depends(authorize(UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    docs = await users.list_users(store, caller)
    return envelope(docs, count=len(docs))


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    return envelope(await users.get_user(store, caller, user_id))


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdate,
    caller: Caller = Depends(get_current_caller),
    store: Datastore = Depends(get_datastore),
):
    """Update a user. ``password`` is ignored; ``role`` only for admins."""
    return envelope(await users.update_user(store, caller, user_id, body))


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    caller: Caller = Depends(authorize(UserRole.ADMIN)),
    store: Datastore = Depends(get_datastore),
):
    await users.delete_user(store, caller, user_id)
    return envelope(message="User deleted successfully")
