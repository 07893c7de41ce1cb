"""
Audit logging service
"""
import logging
from typing import Any, Dict, Optional

from personnel_admin.db.gateway import PersonnelGateway
from personnel_admin.utils.datetime_utils import now_utc
from personnel_admin.utils.json_serializer import to_json_safe

logger = logging.getLogger(__name__)


async def record_audit(
    gateway: PersonnelGateway,
    actor_label: str,
    action: str,
    record_id: Optional[int],
    details: str,
    table_name: str = "employees",
    meta: Optional[Dict[str, Any]] = None
) -> bool:
    """
    Append an audit log entry without ever failing the caller

    Args:
        gateway: Data-access gateway
        actor_label: Display name of the operator (e.g. "System Admin")
        action: Action code (e.g. "WORKLOAD_TRANSFER", "EMPLOYEE_DELETED")
        record_id: ID of the affected record
        details: Human-readable description of what happened
        table_name: Table the record lives in
        meta: Additional metadata as dictionary (optional)

    Returns:
        True if the entry was written, False if the write failed
    """
    # Explicitly set created_at to avoid SQLite issues with server_default
    values = {
        "actor_label": actor_label,
        "action": action,
        "table_name": table_name,
        "record_id": record_id,
        "details": details,
        "meta_json": to_json_safe(meta) if meta is not None else None,
        "created_at": now_utc(),
    }
    try:
        await gateway.insert_audit_entry(values)
    except Exception as exc:
        # The audit trail is observability only; the caller's outcome stands
        logger.warning("Audit entry %s for %s/%s not written: %s", action, table_name, record_id, exc)
        return False
    logger.debug("Audit entry %s for %s/%s written", action, table_name, record_id)
    return True
