"""Health record status transitions and the access log.

``final`` records become ``amended`` on any edit unless the edit marks them
``entered_in_error``; deletion is a soft transition to ``entered_in_error``.
Access log entries are appended with an atomic array push and never
rewritten.
"""

import logging

from medvault.datastore import Collection
from medvault.models.common import format_timestamp, utcnow
from medvault.models.health_record import AccessAction, AccessLogEntry, RecordStatus

logger = logging.getLogger(__name__)


def next_status(current: RecordStatus | str, requested: RecordStatus | str | None) -> RecordStatus | None:
    """Status to store after an edit, or None to leave it unchanged."""
    current = RecordStatus(current)
    requested = RecordStatus(requested) if requested is not None else None
    if current == RecordStatus.FINAL and requested != RecordStatus.ENTERED_IN_ERROR:
        return RecordStatus.AMENDED
    return requested


def apply_amendment(record: dict, changes: dict) -> dict:
    """Return ``changes`` with the status the amendment rule demands."""
    out = dict(changes)
    status = next_status(record.get("status", RecordStatus.FINAL), changes.get("status"))
    if status is None:
        out.pop("status", None)
    else:
        out["status"] = status.value
    if status == RecordStatus.AMENDED and record.get("status") == RecordStatus.FINAL.value:
        logger.info("Record %s amended", record.get("id"))
    return out


def soft_delete_changes() -> dict:
    return {
        "status": RecordStatus.ENTERED_IN_ERROR.value,
        "updatedAt": format_timestamp(utcnow()),
    }


def access_entry(user_id: str, action: AccessAction) -> dict:
    return AccessLogEntry(accessed_by=user_id, action=action).to_document()


async def log_access(records: Collection, record_id: str, user_id: str, action: AccessAction) -> dict | None:
    """Append one access entry and return the record as stored afterwards."""
    return await records.push(record_id, "accessLog", access_entry(user_id, action))
