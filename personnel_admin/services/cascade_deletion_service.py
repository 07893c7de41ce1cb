"""
Cascade deletion of an employee and every record that depends on it

The employee, its work items and its calendar events live in separate tables
and each data-access call commits on its own, so the removal is driven as a
saga: steps run strictly in order, every reversible step pushes its inverse
onto a compensation stack, and any failure replays that stack newest-first.

Step order:
    1. work items: transfer to another active employee, or delete
    2. calendar events created by the employee: always delete
    3. employee row: delete, then read back to verify it is gone

Work items deleted in delete mode and purged events are not restored by a
rollback. Transfer mode is the only fully reversible path.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Set

from personnel_admin.core.config import settings
from personnel_admin.core.constants import (
    AUDIT_CASCADE_ROLLBACK,
    AUDIT_EMPLOYEE_DELETED,
    AUDIT_WORKLOAD_DELETE,
    AUDIT_WORKLOAD_TRANSFER,
)
from personnel_admin.core.errors import (
    AdminRemovalInProgressError,
    DeletionInProgressError,
    PreconditionError,
    describe_failure,
)
from personnel_admin.db.gateway import PersonnelGateway
from personnel_admin.schemas.cascade import CascadeAction
from personnel_admin.schemas.employee import EmployeeSnapshot
from personnel_admin.services.audit_service import record_audit
from personnel_admin.services.compensation import CompensationStack, Irreversible, StepOutcome
from personnel_admin.services.deletion_guard import validate_deletion_prerequisites
from personnel_admin.services.dependent_data_service import delete_work_items, transfer_work_items
from personnel_admin.services.event_purge_service import purge_events
from personnel_admin.services.identity_service import remove_employee, verify_employee_removed
from personnel_admin.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

ROLLBACK_MESSAGE = "Deletion cancelled. Restorable data has been returned to its previous state."
CRITICAL_MESSAGE = "Critical error: data could not be restored. Contact the system administrator."
PARTIAL_ROLLBACK_MESSAGE = (
    "Deletion cancelled. {count} permanently deleted records could not be restored; "
    "all other data has been returned to its previous state."
)
IRREVERSIBLE_WARNING = "Delete mode: removed work items and calendar events cannot be restored."


class CascadeState(str, Enum):
    """State machine for one cascade deletion.

    State Transitions:
        VALIDATING → TRANSFERRING_OR_DELETING_WORK_ITEMS → PURGING_EVENTS
            → REMOVING_IDENTITY → VERIFYING → SUCCEEDED
        any middle state → ROLLING_BACK → FAILED (on step error)
        VALIDATING → FAILED (request rejected, nothing ran)
    """
    VALIDATING = "validating"
    TRANSFERRING_OR_DELETING_WORK_ITEMS = "transferring_or_deleting_work_items"
    PURGING_EVENTS = "purging_events"
    REMOVING_IDENTITY = "removing_identity"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"


@dataclass
class CascadeDeletionResult:
    success: bool
    state: CascadeState
    error: Optional[str] = None
    message: str = ""
    affected_count: int = 0
    rejected: bool = False
    already_running: bool = False
    rolled_back: bool = False
    rollback_failed: bool = False
    notifications: List[str] = field(default_factory=list)
    # In-process step trace; logged, never returned to API clients
    trace: List[Dict[str, Any]] = field(default_factory=list)


class DeletionRegistry:
    """
    Employee ids with a cascade deletion currently running in this process

    At most one admin-role employee is being removed at any time, so the
    admin floor re-checked under a claim cannot be raced by a second removal.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: Set[int] = set()
        self._admin_removal: Optional[int] = None

    def is_active(self, employee_id: int) -> bool:
        with self._lock:
            return employee_id in self._active

    @contextmanager
    def claim(self, employee_id: int, is_admin: bool = False) -> Iterator[None]:
        """
        Hold the id for the duration of one deletion

        Raises:
            DeletionInProgressError: If the id is already claimed
            AdminRemovalInProgressError: If ``is_admin`` and another admin is being removed
        """
        with self._lock:
            if employee_id in self._active:
                raise DeletionInProgressError(employee_id)
            if is_admin and self._admin_removal is not None:
                raise AdminRemovalInProgressError(employee_id, self._admin_removal)
            self._active.add(employee_id)
            if is_admin:
                self._admin_removal = employee_id
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(employee_id)
                if self._admin_removal == employee_id:
                    self._admin_removal = None


deletion_registry = DeletionRegistry()


class CascadeDeletionSaga:
    """
    Drives one employee removal from VALIDATING to SUCCEEDED or FAILED

    The saga exclusively owns its compensation stack and step trace; an
    instance must not be shared between concurrent calls or reused.
    """

    def __init__(
        self,
        gateway: PersonnelGateway,
        employee: EmployeeSnapshot,
        action: CascadeAction,
        target: Optional[EmployeeSnapshot] = None,
        actor_label: Optional[str] = None,
        registry: Optional[DeletionRegistry] = None,
    ):
        self.gateway = gateway
        self.employee = employee
        self.action = CascadeAction(action)
        self.target = target
        self.actor_label = actor_label or settings.AUDIT_ACTOR_LABEL
        self.registry = registry or deletion_registry
        self.state = CascadeState.VALIDATING
        self.trace: List[Dict[str, Any]] = []
        self._compensations = CompensationStack()
        self._affected = 0
        self._irreversible_affected = 0
        self._notifications: List[str] = []

    # -- bookkeeping -----------------------------------------------------

    def _log_step(self, step: str, **details: Any) -> None:
        entry = {"step": step, "timestamp": now_utc().isoformat()}
        entry.update(details)
        self.trace.append(entry)
        logger.debug("Cascade deletion employee=%s step=%s %s", self.employee.id, step, details)

    def _transition(self, state: CascadeState, **details: Any) -> None:
        self.state = state
        self._log_step(state.value, **details)

    def _record(self, outcome: StepOutcome) -> None:
        self._compensations.record(outcome)
        self._affected += outcome.affected
        if isinstance(outcome, Irreversible):
            self._irreversible_affected += outcome.affected

    async def _audit(self, action: str, details: str, meta: Optional[Dict[str, Any]] = None) -> None:
        written = await record_audit(
            self.gateway,
            actor_label=self.actor_label,
            action=action,
            record_id=self.employee.id,
            details=details,
            meta=meta,
        )
        self._log_step("audit", action=action, written=written)

    def _result(self, **kwargs: Any) -> CascadeDeletionResult:
        return CascadeDeletionResult(
            state=self.state,
            affected_count=self._affected,
            notifications=list(self._notifications),
            trace=self.trace,
            **kwargs,
        )

    def reject(self, exc: PreconditionError) -> CascadeDeletionResult:
        """Fail the request without running any step"""
        self._transition(CascadeState.FAILED, rejected=str(exc))
        logger.warning("Cascade deletion of employee %s rejected: %s", self.employee.id, exc)
        return self._result(
            success=False,
            error=str(exc),
            message=str(exc),
            rejected=True,
            already_running=isinstance(exc, DeletionInProgressError),
        )

    # -- validation ------------------------------------------------------

    def validate_request(self) -> None:
        """
        Check the request itself, without touching the database

        Raises:
            PreconditionError: If transfer mode lacks a usable target
        """
        if self.action != CascadeAction.TRANSFER:
            return
        if self.target is None:
            raise PreconditionError("Target employee required for transfer operation")
        if self.target.id == self.employee.id:
            raise PreconditionError("Target employee must be different from the employee being deleted")
        if not self.target.active:
            raise PreconditionError("Target employee must be active")

    async def _validate(self) -> None:
        self.validate_request()

        try:
            current = await self.gateway.get_employee(self.employee.id)
            current_target = None
            if self.action == CascadeAction.TRANSFER:
                current_target = await self.gateway.get_employee(self.target.id)
        except Exception as exc:
            raise PreconditionError(f"Database connection failed: {describe_failure(exc)}") from exc

        if self.action == CascadeAction.TRANSFER and (current_target is None or not current_target.active):
            raise PreconditionError("Target employee not found or no longer active")

        if current is None:
            # Retry after an earlier success: every step resolves as already satisfied
            logger.info("Employee %s not found, treating removal as already satisfied", self.employee.id)
        elif current.is_admin and current.active:
            # Re-checked under the claim; the caller-facing guard ran before it
            prerequisites = await validate_deletion_prerequisites(self.gateway, self.employee.id)
            if not prerequisites.can_delete:
                raise PreconditionError("; ".join(prerequisites.issues))
        self._log_step("validation_passed", employee_found=current is not None)

    # -- steps -----------------------------------------------------------

    async def _resolve_work_items(self) -> None:
        if self.action == CascadeAction.TRANSFER:
            outcome = await transfer_work_items(self.gateway, self.employee, self.target)
            self._record(outcome)
            self._notifications.append(
                f"{outcome.affected} work items transferred to {self.target.full_name}"
            )
            await self._audit(
                AUDIT_WORKLOAD_TRANSFER,
                f"Transferred {outcome.affected} work items to {self.target.full_name}",
                meta={"target_employee_id": self.target.id, "count": outcome.affected},
            )
        else:
            outcome = await delete_work_items(self.gateway, self.employee)
            self._record(outcome)
            self._notifications.append(IRREVERSIBLE_WARNING)
            await self._audit(
                AUDIT_WORKLOAD_DELETE,
                f"Permanently deleted {outcome.affected} work items",
                meta={"count": outcome.affected},
            )
        self._log_step("work_items_resolved", action=self.action.value, count=outcome.affected)

    async def _purge_events(self) -> None:
        outcome = await purge_events(self.gateway, self.employee)
        self._record(outcome)
        self._log_step("events_purged", count=outcome.affected)

    async def _remove_identity(self) -> None:
        outcome = await remove_employee(self.gateway, self.employee)
        # The employee row is not a dependent record; keep it out of affected_count
        self._compensations.record(outcome)
        self._log_step("identity_removed", removed=outcome.affected)

    # -- drivers ---------------------------------------------------------

    async def run(self) -> CascadeDeletionResult:
        """Run the whole sequence; never raises for step or precondition failures"""
        try:
            with self.registry.claim(self.employee.id, is_admin=self.employee.is_admin):
                return await self._run_claimed()
        except DeletionInProgressError as exc:
            return self.reject(exc)

    async def _run_claimed(self) -> CascadeDeletionResult:
        logger.info(
            "Starting cascade deletion: employee=%s (%s) action=%s",
            self.employee.id, self.employee.full_name, self.action.value
        )
        self._log_step("start", employee_id=self.employee.id, action=self.action.value)

        try:
            await self._validate()
        except PreconditionError as exc:
            return self.reject(exc)

        try:
            self._transition(CascadeState.TRANSFERRING_OR_DELETING_WORK_ITEMS)
            await self._resolve_work_items()

            self._transition(CascadeState.PURGING_EVENTS)
            await self._purge_events()

            self._transition(CascadeState.REMOVING_IDENTITY)
            await self._remove_identity()

            self._transition(CascadeState.VERIFYING)
            await verify_employee_removed(self.gateway, self.employee.id)
        except Exception as exc:
            return await self._roll_back(exc)

        return await self._succeed()

    async def _succeed(self) -> CascadeDeletionResult:
        self._transition(CascadeState.SUCCEEDED, affected_count=self._affected)

        details = f"Employee permanently deleted via cascade deletion. Action: {self.action.value}"
        if self.action == CascadeAction.TRANSFER:
            details += f" to {self.target.full_name}"
        await self._audit(
            AUDIT_EMPLOYEE_DELETED,
            details,
            meta={
                "action": self.action.value,
                "target_employee_id": self.target.id if self.target else None,
                "affected_count": self._affected,
                "employee": self.employee,
            },
        )

        message = f"{self.employee.full_name} has been permanently deleted"
        self._notifications.append(message)
        logger.info("Cascade deletion of employee %s completed (%s dependent records)", self.employee.id, self._affected)
        return self._result(success=True, message=message)

    async def _roll_back(self, exc: Exception) -> CascadeDeletionResult:
        failed_in = self.state
        self._transition(CascadeState.ROLLING_BACK, failed_step=failed_in.value, error=str(exc))
        logger.error(
            "Cascade deletion of employee %s failed during %s: %s",
            self.employee.id, failed_in.value, exc, exc_info=True
        )

        report = await self._compensations.rollback()
        self._transition(
            CascadeState.FAILED,
            compensations=report.attempted,
            compensation_failures=[name for name, _ in report.failed],
        )

        if report.succeeded:
            if self._irreversible_affected:
                message = PARTIAL_ROLLBACK_MESSAGE.format(count=self._irreversible_affected)
            else:
                message = ROLLBACK_MESSAGE
            logger.info("Rollback for employee %s completed (%s compensations)", self.employee.id, len(report.attempted))
        else:
            message = CRITICAL_MESSAGE
            logger.critical(
                "Rollback for employee %s incomplete, manual intervention required: %s",
                self.employee.id, report.failed
            )
        self._notifications.append(message)
        if self._irreversible_affected:
            self._notifications.append(
                f"{self._irreversible_affected} permanently deleted records were not restored"
            )

        await self._audit(
            AUDIT_CASCADE_ROLLBACK,
            f"Cascade deletion failed during {failed_in.value}: {exc}. "
            f"Rollback {'completed' if report.succeeded else 'FAILED'}.",
            meta={
                "failed_step": failed_in.value,
                "compensations": report.attempted,
                "compensation_failures": report.failed,
            },
        )

        return self._result(
            success=False,
            error=describe_failure(exc),
            message=message,
            rolled_back=report.succeeded,
            rollback_failed=not report.succeeded,
        )


async def execute_cascade_deletion(
    gateway: PersonnelGateway,
    employee: EmployeeSnapshot,
    action: CascadeAction,
    target: Optional[EmployeeSnapshot] = None,
    actor_label: Optional[str] = None,
    registry: Optional[DeletionRegistry] = None,
) -> CascadeDeletionResult:
    """
    Remove an employee after the caller-facing checks pass

    Args:
        gateway: Data-access gateway
        employee: Snapshot of the employee, taken before any mutation
        action: ``transfer`` or ``delete`` for the employee's work items
        target: Active, different employee receiving work items (transfer only)
        actor_label: Operator name written to the audit trail
        registry: In-flight registry (defaults to the process-wide one)

    Returns:
        CascadeDeletionResult; failures are reported, not raised
    """
    saga = CascadeDeletionSaga(gateway, employee, action, target, actor_label, registry)
    try:
        saga.validate_request()
    except PreconditionError as exc:
        return saga.reject(exc)

    prerequisites = await validate_deletion_prerequisites(gateway, employee.id)
    if not prerequisites.can_delete:
        return saga.reject(PreconditionError("; ".join(prerequisites.issues)))

    return await saga.run()


async def retry_cascade_deletion(
    gateway: PersonnelGateway,
    employee: EmployeeSnapshot,
    action: CascadeAction,
    target: Optional[EmployeeSnapshot] = None,
    actor_label: Optional[str] = None,
    registry: Optional[DeletionRegistry] = None,
) -> CascadeDeletionResult:
    """Re-run the whole sequence from validation (safe after an earlier success)"""
    logger.info("Retrying cascade deletion for employee %s", employee.id)
    result = await execute_cascade_deletion(gateway, employee, action, target, actor_label, registry)
    if not result.success:
        result.notifications.append("Retry failed: " + (result.error or "operation still failing"))
    return result
