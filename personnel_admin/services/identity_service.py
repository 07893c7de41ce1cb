"""
Identity removal - deletes the employee row and verifies it is gone
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from personnel_admin.core.errors import StepFailedError, VerificationError, describe_failure
from personnel_admin.db.gateway import PersonnelGateway
from personnel_admin.schemas.employee import EmployeeSnapshot
from personnel_admin.services.compensation import CompensationAction, Irreversible, Reversible, StepOutcome
from personnel_admin.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


def build_recreate_values(snapshot: EmployeeSnapshot, updated_at: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Column values that rebuild a removed employee from its snapshot

    Keeps the original id and created_at, reactivates the record and
    refreshes updated_at.
    """
    return {
        "id": snapshot.id,
        "full_name": snapshot.full_name,
        "nip": snapshot.nip,
        "grade": snapshot.grade,
        "position": snapshot.position,
        "username": snapshot.username,
        "email": snapshot.email,
        "role": snapshot.role.value,
        "active": True,
        "created_at": snapshot.created_at,
        "updated_at": updated_at or now_utc(),
    }


async def remove_employee(gateway: PersonnelGateway, snapshot: EmployeeSnapshot) -> StepOutcome:
    """
    Delete the employee row

    A delete that removes nothing (the row is already gone, e.g. on a retry
    after success) is treated as satisfied and has nothing to undo.

    Raises:
        StepFailedError: If the delete call fails
    """
    try:
        removed = await gateway.delete_employee(snapshot.id)
    except Exception as exc:
        raise StepFailedError("removing_identity", f"Employee deletion failed: {describe_failure(exc)}", exc) from exc

    if not removed:
        logger.info("Employee %s already absent, nothing to delete", snapshot.id)
        return Irreversible(affected=0)

    async def _recreate() -> None:
        # Verification failures leave the row in place; only rebuild what is missing
        if await gateway.count_employee_rows(snapshot.id):
            logger.info("Employee %s still present, recreate skipped", snapshot.id)
            return
        await gateway.insert_employee(build_recreate_values(snapshot))
        logger.info("Employee %s recreated from snapshot", snapshot.id)

    return Reversible(
        compensation=CompensationAction(
            name="recreate_employee",
            description=f"recreate employee {snapshot.id} ({snapshot.full_name}) from snapshot",
            undo=_recreate,
        ),
        affected=removed,
    )


async def verify_employee_removed(gateway: PersonnelGateway, employee_id: int) -> None:
    """
    Read the employee back and require zero rows

    A delete call that reports no error is not trusted on its own: a row
    kept alive by a constraint or policy must fail the whole operation.

    Raises:
        VerificationError: If the row is still present
        StepFailedError: If the read-back itself fails
    """
    try:
        remaining = await gateway.count_employee_rows(employee_id)
    except Exception as exc:
        raise StepFailedError("verifying", f"Deletion verification failed: {describe_failure(exc)}", exc) from exc

    if remaining:
        logger.error("Employee %s still exists after delete call reported success", employee_id)
        raise VerificationError(employee_id)
