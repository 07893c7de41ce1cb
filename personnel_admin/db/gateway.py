"""
Data-access gateway used by the cascade deletion flow

Every method is a coroutine that runs one blocking SQLAlchemy unit of work in
the Starlette threadpool. Write methods commit before returning, so each call
is atomic and durable on its own; nothing here spans more than one call.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from personnel_admin.core.errors import DataAccessError
from personnel_admin.models.audit_log import AuditLog
from personnel_admin.models.calendar_event import CalendarEvent
from personnel_admin.models.employee import Employee, Role
from personnel_admin.models.work_item import WorkItem
from personnel_admin.schemas.employee import EmployeeSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkItemRef:
    """Identity and last-modified time of a work item before it was reassigned"""
    id: int
    updated_at: Optional[datetime]


class PersonnelGateway:
    """Per-entity operations over employees, work items, events and audit logs"""

    def __init__(self, db: Session):
        self.db = db

    async def _call(self, operation: str, fn: Callable[..., Any], *args: Any, commit: bool = False) -> Any:
        return await run_in_threadpool(self._execute, operation, fn, commit, *args)

    def _execute(self, operation: str, fn: Callable[..., Any], commit: bool, *args: Any) -> Any:
        try:
            result = fn(*args)
            if commit:
                self.db.commit()
            return result
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Data access failed: operation=%s error=%s", operation, exc)
            raise DataAccessError(operation, str(exc)) from exc

    # -- employees -------------------------------------------------------

    async def get_employee(self, employee_id: int) -> Optional[EmployeeSnapshot]:
        """Read an employee by id"""
        def _get():
            employee = self.db.query(Employee).filter(Employee.id == employee_id).first()
            return EmployeeSnapshot.model_validate(employee) if employee else None
        return await self._call("read employee", _get)

    async def count_employee_rows(self, employee_id: int) -> int:
        """Number of rows stored under an employee id (0 or 1)"""
        def _count():
            return self.db.query(func.count(Employee.id)).filter(Employee.id == employee_id).scalar() or 0
        return await self._call("read back employee", _count)

    async def count_active_admins(self) -> int:
        def _count():
            return (
                self.db.query(func.count(Employee.id))
                .filter(Employee.role == Role.ADMIN.value, Employee.active == True)  # noqa: E712
                .scalar()
                or 0
            )
        return await self._call("count active admins", _count)

    async def list_active_employees(self, exclude_id: int) -> List[EmployeeSnapshot]:
        """Active employees other than ``exclude_id``, ordered by full name"""
        def _list():
            rows = (
                self.db.query(Employee)
                .filter(Employee.active == True, Employee.id != exclude_id)  # noqa: E712
                .order_by(Employee.full_name.asc())
                .all()
            )
            return [EmployeeSnapshot.model_validate(row) for row in rows]
        return await self._call("list active employees", _list)

    async def delete_employee(self, employee_id: int) -> int:
        """Delete an employee row, returning the number of rows removed"""
        def _delete():
            return (
                self.db.query(Employee)
                .filter(Employee.id == employee_id)
                .delete(synchronize_session="fetch")
            )
        return await self._call("delete employee", _delete, commit=True)

    async def insert_employee(self, values: Dict[str, Any]) -> None:
        """Insert an employee row with explicit column values (including id)"""
        def _insert():
            self.db.add(Employee(**values))
        await self._call("insert employee", _insert, commit=True)

    # -- work items ------------------------------------------------------

    async def count_work_items(self, employee_id: int) -> int:
        def _count():
            return self.db.query(func.count(WorkItem.id)).filter(WorkItem.user_id == employee_id).scalar() or 0
        return await self._call("count work items", _count)

    async def list_work_item_refs(self, employee_id: int) -> List[WorkItemRef]:
        def _list():
            rows = (
                self.db.query(WorkItem.id, WorkItem.updated_at)
                .filter(WorkItem.user_id == employee_id)
                .order_by(WorkItem.id.asc())
                .all()
            )
            return [WorkItemRef(id=row.id, updated_at=row.updated_at) for row in rows]
        return await self._call("list work items", _list)

    async def reassign_work_items(
        self,
        refs: Sequence[WorkItemRef],
        source_id: int,
        target_id: int,
        updated_at: datetime,
    ) -> int:
        """Move the given work items from ``source_id`` to ``target_id``"""
        ids = [ref.id for ref in refs]

        def _update():
            if not ids:
                return 0
            return (
                self.db.query(WorkItem)
                .filter(WorkItem.id.in_(ids), WorkItem.user_id == source_id)
                .update(
                    {WorkItem.user_id: target_id, WorkItem.updated_at: updated_at},
                    synchronize_session=False,
                )
            )
        return await self._call("update work items owner", _update, commit=True)

    async def restore_work_items(self, refs: Sequence[WorkItemRef], current_owner_id: int, owner_id: int) -> int:
        """Point work items back at ``owner_id`` with their original ``updated_at``"""
        def _restore():
            restored = 0
            for ref in refs:
                restored += (
                    self.db.query(WorkItem)
                    .filter(WorkItem.id == ref.id, WorkItem.user_id == current_owner_id)
                    .update(
                        {WorkItem.user_id: owner_id, WorkItem.updated_at: ref.updated_at},
                        synchronize_session=False,
                    )
                )
            return restored
        return await self._call("restore work items owner", _restore, commit=True)

    async def delete_work_items(self, employee_id: int) -> int:
        def _delete():
            return (
                self.db.query(WorkItem)
                .filter(WorkItem.user_id == employee_id)
                .delete(synchronize_session="fetch")
            )
        return await self._call("delete work items", _delete, commit=True)

    # -- calendar events -------------------------------------------------

    async def count_events(self, creator_id: int) -> int:
        def _count():
            return (
                self.db.query(func.count(CalendarEvent.id))
                .filter(CalendarEvent.creator_id == creator_id)
                .scalar()
                or 0
            )
        return await self._call("count events", _count)

    async def delete_events(self, creator_id: int) -> int:
        def _delete():
            return (
                self.db.query(CalendarEvent)
                .filter(CalendarEvent.creator_id == creator_id)
                .delete(synchronize_session="fetch")
            )
        return await self._call("delete events", _delete, commit=True)

    # -- audit -----------------------------------------------------------

    async def insert_audit_entry(self, values: Dict[str, Any]) -> None:
        def _insert():
            self.db.add(AuditLog(**values))
        await self._call("insert audit entry", _insert, commit=True)
