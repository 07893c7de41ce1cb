"""
Deletion impact analysis - advisory, read-only counts shown before removal
"""
import logging
from dataclasses import dataclass
from typing import List

from personnel_admin.db.gateway import PersonnelGateway
from personnel_admin.schemas.employee import EmployeeSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeletionImpact:
    work_item_count: int = 0
    event_count: int = 0

    @property
    def total_impact(self) -> int:
        return self.work_item_count + self.event_count


async def get_deletion_impact(gateway: PersonnelGateway, employee_id: int) -> DeletionImpact:
    """
    Count the work items owned by and events created by an employee

    Used to help an operator choose between transfer and delete. A read
    failure yields zero counts instead of an error.
    """
    try:
        work_item_count = await gateway.count_work_items(employee_id)
        event_count = await gateway.count_events(employee_id)
    except Exception as exc:
        logger.error("Error getting deletion impact for employee %s: %s", employee_id, exc)
        return DeletionImpact()
    return DeletionImpact(work_item_count=work_item_count, event_count=event_count)


async def list_transfer_targets(gateway: PersonnelGateway, exclude_employee_id: int) -> List[EmployeeSnapshot]:
    """Active employees that may receive transferred work items, by full name"""
    try:
        return await gateway.list_active_employees(exclude_employee_id)
    except Exception as exc:
        logger.error("Error fetching transfer targets for employee %s: %s", exclude_employee_id, exc)
        return []
