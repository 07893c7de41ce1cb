"""
Caller-facing checks that must pass before an employee can be removed
"""
import logging
from dataclasses import dataclass, field
from typing import List

from personnel_admin.db.gateway import PersonnelGateway

logger = logging.getLogger(__name__)

LAST_ADMIN_ISSUE = "Cannot delete the last active admin in the system"
VALIDATION_FAILED_ISSUE = "Failed to validate deletion prerequisites"


@dataclass
class DeletionPrerequisites:
    can_delete: bool
    issues: List[str] = field(default_factory=list)


async def validate_deletion_prerequisites(gateway: PersonnelGateway, employee_id: int) -> DeletionPrerequisites:
    """
    Reject removals that would leave the system without an active admin

    Read-only. Any read failure is reported as "cannot delete" so that an
    unverifiable request never reaches the mutating steps.
    """
    issues: List[str] = []
    try:
        employee = await gateway.get_employee(employee_id)
        if employee is not None and employee.is_admin and employee.active:
            if await gateway.count_active_admins() <= 1:
                issues.append(LAST_ADMIN_ISSUE)
    except Exception as exc:
        logger.error("Error validating deletion prerequisites for employee %s: %s", employee_id, exc)
        return DeletionPrerequisites(can_delete=False, issues=[VALIDATION_FAILED_ISSUE])

    return DeletionPrerequisites(can_delete=not issues, issues=issues)
