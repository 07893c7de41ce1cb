"""
Dependent-data resolution for employee removal

Work items owned by an employee are either transferred to another active
employee (reversible) or permanently deleted (irreversible).
"""
import logging

from personnel_admin.core.errors import StepFailedError, describe_failure
from personnel_admin.db.gateway import PersonnelGateway
from personnel_admin.schemas.employee import EmployeeSnapshot
from personnel_admin.services.compensation import CompensationAction, Irreversible, Reversible
from personnel_admin.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


async def transfer_work_items(
    gateway: PersonnelGateway,
    source: EmployeeSnapshot,
    target: EmployeeSnapshot
) -> Reversible:
    """
    Re-point every work item of ``source`` at ``target``

    The ids and original ``updated_at`` values are captured first so the
    compensation moves back exactly these rows, leaving the target's own
    work items alone.

    Raises:
        StepFailedError: If reading or updating the work items fails
    """
    try:
        refs = await gateway.list_work_item_refs(source.id)
        moved = await gateway.reassign_work_items(refs, source.id, target.id, now_utc())
    except Exception as exc:
        raise StepFailedError("transfer_work_items", f"Workload transfer failed: {describe_failure(exc)}", exc) from exc

    if moved != len(refs):
        logger.warning(
            "Work item transfer moved %s of %s rows for employee %s (concurrent change?)",
            moved, len(refs), source.id
        )
    logger.info("Transferred %s work items from employee %s to %s", moved, source.id, target.id)

    async def _restore() -> None:
        await gateway.restore_work_items(refs, current_owner_id=target.id, owner_id=source.id)

    return Reversible(
        compensation=CompensationAction(
            name="restore_work_items",
            description=f"move {len(refs)} work items back from employee {target.id} to {source.id}",
            undo=_restore,
        ),
        affected=moved,
    )


async def delete_work_items(gateway: PersonnelGateway, source: EmployeeSnapshot) -> Irreversible:
    """
    Permanently delete every work item of ``source``

    Raises:
        StepFailedError: If the delete call fails
    """
    try:
        deleted = await gateway.delete_work_items(source.id)
    except Exception as exc:
        raise StepFailedError("delete_work_items", f"Workload deletion failed: {describe_failure(exc)}", exc) from exc

    logger.info("Deleted %s work items of employee %s", deleted, source.id)
    return Irreversible(affected=deleted, reason=f"{deleted} work items permanently deleted")
