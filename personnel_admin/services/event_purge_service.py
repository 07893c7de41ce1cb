"""
Calendar event purge for employee removal (events are never transferred)
"""
import logging

from personnel_admin.core.errors import StepFailedError, describe_failure
from personnel_admin.db.gateway import PersonnelGateway
from personnel_admin.schemas.employee import EmployeeSnapshot
from personnel_admin.services.compensation import Irreversible

logger = logging.getLogger(__name__)


async def purge_events(gateway: PersonnelGateway, employee: EmployeeSnapshot) -> Irreversible:
    """Delete every calendar event created by ``employee``"""
    try:
        deleted = await gateway.delete_events(employee.id)
    except Exception as exc:
        raise StepFailedError("purge_events", f"Calendar deletion failed: {describe_failure(exc)}", exc) from exc

    logger.info("Deleted %s calendar events created by employee %s", deleted, employee.id)
    return Irreversible(affected=deleted, reason=f"{deleted} calendar events permanently deleted")
