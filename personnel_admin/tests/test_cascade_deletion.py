"""
Tests for the employee cascade deletion saga
"""
import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from personnel_admin.core.constants import (
    AUDIT_CASCADE_ROLLBACK,
    AUDIT_EMPLOYEE_DELETED,
    AUDIT_WORKLOAD_DELETE,
    AUDIT_WORKLOAD_TRANSFER,
)
from personnel_admin.core.errors import AdminRemovalInProgressError
from personnel_admin.db.gateway import DataAccessError, PersonnelGateway
from personnel_admin.models import AuditLog, CalendarEvent, Employee, Role, WorkItem
from personnel_admin.schemas.cascade import CascadeAction
from personnel_admin.schemas.employee import EmployeeSnapshot
from personnel_admin.services.cascade_deletion_service import (
    CRITICAL_MESSAGE,
    IRREVERSIBLE_WARNING,
    PARTIAL_ROLLBACK_MESSAGE,
    ROLLBACK_MESSAGE,
    CascadeDeletionSaga,
    CascadeState,
    DeletionRegistry,
    execute_cascade_deletion,
    retry_cascade_deletion,
)
from personnel_admin.services.deletion_guard import LAST_ADMIN_ISSUE
from personnel_admin.tests.helpers import count_rows


def _snapshot_fields(snapshot):
    return {
        key: value
        for key, value in snapshot.model_dump().items()
        if key != "updated_at"
    }


def _audit_actions(db):
    return [row.action for row in db.query(AuditLog).order_by(AuditLog.id.asc()).all()]


@pytest.fixture
def registry():
    """Isolated in-flight registry per test"""
    return DeletionRegistry()


@pytest.mark.asyncio
async def test_delete_mode_removes_items_events_and_employee(
    db, gateway, registry, admin_user, make_employee, make_work_items, make_events
):
    """Employee with 3 work items and 1 event, delete mode"""
    employee_id = make_employee(full_name="Employee A").id
    make_work_items(employee_id, 3)
    make_events(employee_id, 1)
    snapshot = await gateway.get_employee(employee_id)

    result = await execute_cascade_deletion(gateway, snapshot, CascadeAction.DELETE, registry=registry)

    assert result.success is True
    assert result.state == CascadeState.SUCCEEDED
    assert result.affected_count == 4
    assert IRREVERSIBLE_WARNING in result.notifications
    assert count_rows(db, WorkItem, user_id=employee_id) == 0
    assert count_rows(db, CalendarEvent, creator_id=employee_id) == 0
    assert await gateway.get_employee(employee_id) is None
    assert _audit_actions(db) == [AUDIT_WORKLOAD_DELETE, AUDIT_EMPLOYEE_DELETED]


@pytest.mark.asyncio
async def test_transfer_mode_moves_every_work_item_to_target(
    db, gateway, registry, admin_user, make_employee, make_work_items
):
    """Employee B transfers 2 work items to active employee C"""
    source_id = make_employee(full_name="Employee B").id
    target_id = make_employee(full_name="Employee C").id
    item_ids = make_work_items(source_id, 2)
    own_item_ids = make_work_items(target_id, 1)
    source = await gateway.get_employee(source_id)
    target = await gateway.get_employee(target_id)

    result = await execute_cascade_deletion(
        gateway, source, CascadeAction.TRANSFER, target=target, registry=registry
    )

    assert result.success is True
    assert result.affected_count == 2
    assert "2 work items transferred to Employee C" in result.notifications
    owners = {item.id: item.user_id for item in db.query(WorkItem).all()}
    for item_id in item_ids + own_item_ids:
        assert owners[item_id] == target_id
    assert await gateway.get_employee(source_id) is None
    assert _audit_actions(db) == [AUDIT_WORKLOAD_TRANSFER, AUDIT_EMPLOYEE_DELETED]

    deleted_entry = db.query(AuditLog).filter(AuditLog.action == AUDIT_EMPLOYEE_DELETED).one()
    assert deleted_entry.record_id == source_id
    assert deleted_entry.meta_json["target_employee_id"] == target_id
    assert deleted_entry.meta_json["employee"]["username"] == source.username


@pytest.mark.asyncio
async def test_identity_delete_failure_restores_transferred_items(
    db, gateway, registry, monkeypatch, admin_user, make_employee, make_work_items, make_events
):
    """A failing employee delete after a transfer returns every item to its owner"""
    source_id = make_employee(full_name="Employee B").id
    target_id = make_employee(full_name="Employee C").id
    item_ids = make_work_items(source_id, 2)
    own_item_ids = make_work_items(target_id, 1)
    make_events(source_id, 2)
    source = await gateway.get_employee(source_id)
    target = await gateway.get_employee(target_id)

    async def failing_delete(employee_id):
        raise DataAccessError("delete employee", "connection reset")

    monkeypatch.setattr(gateway, "delete_employee", failing_delete)

    result = await execute_cascade_deletion(
        gateway, source, CascadeAction.TRANSFER, target=target, registry=registry
    )

    assert result.success is False
    assert result.state == CascadeState.FAILED
    assert result.rolled_back is True
    assert result.rollback_failed is False
    assert result.message == PARTIAL_ROLLBACK_MESSAGE.format(count=2)
    assert result.error == "Employee deletion failed: delete employee failed"
    assert "2 permanently deleted records were not restored" in result.notifications

    owners = {item.id: item.user_id for item in db.query(WorkItem).all()}
    for item_id in item_ids:
        assert owners[item_id] == source_id
    for item_id in own_item_ids:
        assert owners[item_id] == target_id

    restored = await gateway.get_employee(source_id)
    assert restored is not None
    assert restored == source
    # Events are purged before the identity step and stay purged
    assert count_rows(db, CalendarEvent, creator_id=source_id) == 0
    assert _audit_actions(db) == [AUDIT_WORKLOAD_TRANSFER, AUDIT_CASCADE_ROLLBACK]


@pytest.mark.asyncio
async def test_transfer_rollback_restores_original_updated_at(
    db, gateway, registry, monkeypatch, admin_user, make_employee, make_work_items
):
    source_id = make_employee(full_name="Employee B").id
    target_id = make_employee(full_name="Employee C").id
    item_ids = make_work_items(source_id, 2)
    before = {item.id: item.updated_at for item in db.query(WorkItem).all()}
    source = await gateway.get_employee(source_id)
    target = await gateway.get_employee(target_id)

    async def failing_purge(creator_id):
        raise DataAccessError("delete events", "disk I/O error")

    monkeypatch.setattr(gateway, "delete_events", failing_purge)

    result = await execute_cascade_deletion(
        gateway, source, CascadeAction.TRANSFER, target=target, registry=registry
    )

    assert result.success is False
    assert result.rolled_back is True
    assert "Calendar deletion failed" in result.error
    db.expire_all()
    for item in db.query(WorkItem).filter(WorkItem.id.in_(item_ids)).all():
        assert item.user_id == source_id
        assert item.updated_at == before[item.id]


@pytest.mark.asyncio
async def test_row_still_present_after_delete_fails_verification(
    db, gateway, registry, monkeypatch, admin_user, make_employee, make_work_items
):
    """A delete call that reports success but leaves the row must not succeed"""
    source_id = make_employee(full_name="Employee B").id
    target_id = make_employee(full_name="Employee C").id
    item_ids = make_work_items(source_id, 2)
    source = await gateway.get_employee(source_id)
    target = await gateway.get_employee(target_id)

    async def silent_delete(employee_id):
        return 1

    monkeypatch.setattr(gateway, "delete_employee", silent_delete)

    result = await execute_cascade_deletion(
        gateway, source, CascadeAction.TRANSFER, target=target, registry=registry
    )

    assert result.success is False
    assert result.error == "Employee still exists in database after deletion attempt"
    assert result.rolled_back is True
    assert any(step["step"] == CascadeState.VERIFYING.value for step in result.trace)
    assert count_rows(db, Employee) == 3
    assert count_rows(db, WorkItem, user_id=source_id) == len(item_ids)


@pytest.mark.asyncio
async def test_failed_read_back_recreates_employee_with_original_identity(
    db, gateway, registry, monkeypatch, admin_user, make_employee, make_work_items
):
    source_id = make_employee(full_name="Employee B", position="Planner").id
    target_id = make_employee(full_name="Employee C").id
    make_work_items(source_id, 1)
    source = await gateway.get_employee(source_id)
    target = await gateway.get_employee(target_id)

    real_count = gateway.count_employee_rows
    calls = {"n": 0}

    async def flaky_count(employee_id):
        calls["n"] += 1
        if calls["n"] == 1:
            raise DataAccessError("read back employee", "timeout")
        return await real_count(employee_id)

    monkeypatch.setattr(gateway, "count_employee_rows", flaky_count)

    result = await execute_cascade_deletion(
        gateway, source, CascadeAction.TRANSFER, target=target, registry=registry
    )

    assert result.success is False
    assert result.rolled_back is True
    restored = await gateway.get_employee(source_id)
    assert restored is not None
    assert _snapshot_fields(restored) == _snapshot_fields(source)
    assert count_rows(db, WorkItem, user_id=source_id) == 1


@pytest.mark.asyncio
async def test_audit_failures_do_not_change_outcome(
    db, gateway, registry, monkeypatch, admin_user, make_employee, make_work_items, make_events
):
    employee_id = make_employee(full_name="Employee A").id
    make_work_items(employee_id, 3)
    make_events(employee_id, 1)
    snapshot = await gateway.get_employee(employee_id)

    async def failing_audit(values):
        raise DataAccessError("insert audit entry", "table is locked")

    monkeypatch.setattr(gateway, "insert_audit_entry", failing_audit)

    result = await execute_cascade_deletion(gateway, snapshot, CascadeAction.DELETE, registry=registry)

    assert result.success is True
    assert result.affected_count == 4
    assert await gateway.get_employee(employee_id) is None
    assert count_rows(db, AuditLog) == 0
    audit_steps = [step for step in result.trace if step["step"] == "audit"]
    assert audit_steps and all(step["written"] is False for step in audit_steps)


@pytest.mark.asyncio
async def test_audit_failures_do_not_change_rollback_outcome(
    db, gateway, registry, monkeypatch, admin_user, make_employee, make_work_items
):
    source_id = make_employee(full_name="Employee B").id
    target_id = make_employee(full_name="Employee C").id
    make_work_items(source_id, 2)
    source = await gateway.get_employee(source_id)
    target = await gateway.get_employee(target_id)

    async def failing_audit(values):
        raise DataAccessError("insert audit entry", "table is locked")

    async def failing_delete(employee_id):
        raise DataAccessError("delete employee", "connection reset")

    monkeypatch.setattr(gateway, "insert_audit_entry", failing_audit)
    monkeypatch.setattr(gateway, "delete_employee", failing_delete)

    result = await execute_cascade_deletion(
        gateway, source, CascadeAction.TRANSFER, target=target, registry=registry
    )

    assert result.success is False
    assert result.rolled_back is True
    assert result.message == ROLLBACK_MESSAGE
    assert count_rows(db, WorkItem, user_id=source_id) == 2


@pytest.mark.asyncio
async def test_failed_compensation_reports_critical_error(
    db, gateway, registry, monkeypatch, admin_user, make_employee, make_work_items
):
    source_id = make_employee(full_name="Employee B").id
    target_id = make_employee(full_name="Employee C").id
    make_work_items(source_id, 2)
    source = await gateway.get_employee(source_id)
    target = await gateway.get_employee(target_id)

    async def failing_delete(employee_id):
        raise DataAccessError("delete employee", "connection reset")

    async def failing_restore(refs, current_owner_id, owner_id):
        raise DataAccessError("restore work items owner", "connection reset")

    monkeypatch.setattr(gateway, "delete_employee", failing_delete)
    monkeypatch.setattr(gateway, "restore_work_items", failing_restore)

    result = await execute_cascade_deletion(
        gateway, source, CascadeAction.TRANSFER, target=target, registry=registry
    )

    assert result.success is False
    assert result.rolled_back is False
    assert result.rollback_failed is True
    assert result.message == CRITICAL_MESSAGE
    rollback_entry = db.query(AuditLog).filter(AuditLog.action == AUDIT_CASCADE_ROLLBACK).one()
    assert "Rollback FAILED" in rollback_entry.details


@pytest.mark.asyncio
async def test_sole_admin_is_rejected_without_mutation(db, gateway, registry, admin_user, make_work_items, make_events):
    """The only active admin cannot be removed"""
    admin_id = admin_user.id
    make_work_items(admin_id, 2)
    make_events(admin_id, 1)
    snapshot = await gateway.get_employee(admin_id)

    result = await execute_cascade_deletion(gateway, snapshot, CascadeAction.DELETE, registry=registry)

    assert result.success is False
    assert result.rejected is True
    assert result.state == CascadeState.FAILED
    assert LAST_ADMIN_ISSUE in result.error
    assert count_rows(db, WorkItem, user_id=admin_id) == 2
    assert count_rows(db, CalendarEvent, creator_id=admin_id) == 1
    assert await gateway.get_employee(admin_id) is not None
    assert count_rows(db, AuditLog) == 0


@pytest.mark.asyncio
async def test_admin_can_be_removed_when_another_admin_remains(db, gateway, registry, admin_user, make_employee):
    second_admin_id = make_employee(full_name="Second Admin", role=Role.ADMIN).id
    snapshot = await gateway.get_employee(second_admin_id)

    result = await execute_cascade_deletion(gateway, snapshot, CascadeAction.DELETE, registry=registry)

    assert result.success is True
    assert await gateway.count_active_admins() == 1


def _detached_snapshot(employee_id, full_name, active=True):
    now = datetime(2024, 1, 1, 8, 0, 0)
    return EmployeeSnapshot(
        id=employee_id,
        full_name=full_name,
        username=f"user{employee_id}",
        role=Role.USER,
        active=active,
        created_at=now,
        updated_at=now,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "target, message",
    [
        (None, "Target employee required for transfer operation"),
        (_detached_snapshot(7, "Employee B"), "Target employee must be different"),
        (_detached_snapshot(8, "Employee C", active=False), "Target employee must be active"),
    ],
)
async def test_transfer_without_usable_target_is_rejected_before_any_query(target, message):
    mock_gateway = AsyncMock(spec=PersonnelGateway)
    employee = _detached_snapshot(7, "Employee B")

    result = await execute_cascade_deletion(
        mock_gateway, employee, CascadeAction.TRANSFER, target=target, registry=DeletionRegistry()
    )

    assert result.success is False
    assert result.rejected is True
    assert message in result.error
    assert mock_gateway.mock_calls == []


@pytest.mark.asyncio
async def test_target_removed_before_run_is_rejected(db, gateway, registry, admin_user, make_employee, make_work_items):
    source_id = make_employee(full_name="Employee B").id
    make_work_items(source_id, 2)
    source = await gateway.get_employee(source_id)
    vanished_target = _detached_snapshot(999, "Employee Z")

    result = await execute_cascade_deletion(
        gateway, source, CascadeAction.TRANSFER, target=vanished_target, registry=registry
    )

    assert result.success is False
    assert result.rejected is True
    assert result.error == "Target employee not found or no longer active"
    assert count_rows(db, WorkItem, user_id=source_id) == 2
    assert await gateway.get_employee(source_id) is not None


@pytest.mark.asyncio
async def test_concurrent_deletion_of_same_employee_is_rejected(db, gateway, registry, admin_user, make_employee):
    employee_id = make_employee(full_name="Employee A").id
    snapshot = await gateway.get_employee(employee_id)

    with registry.claim(employee_id):
        result = await execute_cascade_deletion(gateway, snapshot, CascadeAction.DELETE, registry=registry)

    assert result.success is False
    assert result.already_running is True
    assert await gateway.get_employee(employee_id) is not None
    assert not registry.is_active(employee_id)


@pytest.mark.asyncio
async def test_retry_after_success_is_a_no_op(db, gateway, registry, admin_user, make_employee, make_work_items):
    employee_id = make_employee(full_name="Employee A").id
    make_work_items(employee_id, 2)
    snapshot = await gateway.get_employee(employee_id)

    first = await execute_cascade_deletion(gateway, snapshot, CascadeAction.DELETE, registry=registry)
    second = await retry_cascade_deletion(gateway, snapshot, CascadeAction.DELETE, registry=registry)

    assert first.success is True
    assert second.success is True
    assert second.affected_count == 0
    assert await gateway.get_employee(employee_id) is None


@pytest.mark.asyncio
async def test_retry_reports_persistent_failure(db, gateway, registry, monkeypatch, admin_user, make_employee):
    employee_id = make_employee(full_name="Employee A").id
    snapshot = await gateway.get_employee(employee_id)

    async def failing_delete(employee_id):
        raise DataAccessError("delete employee", "connection reset")

    monkeypatch.setattr(gateway, "delete_employee", failing_delete)

    result = await retry_cascade_deletion(gateway, snapshot, CascadeAction.DELETE, registry=registry)

    assert result.success is False
    assert result.notifications[-1].startswith("Retry failed: ")
    assert await gateway.get_employee(employee_id) is not None


@pytest.mark.asyncio
async def test_delete_mode_failure_keeps_work_items_deleted(
    db, gateway, registry, monkeypatch, admin_user, make_employee, make_work_items
):
    """Work items removed in delete mode are not brought back by a rollback"""
    employee_id = make_employee(full_name="Employee A").id
    make_work_items(employee_id, 3)
    snapshot = await gateway.get_employee(employee_id)

    async def failing_delete(employee_id):
        raise DataAccessError("delete employee", "connection reset")

    monkeypatch.setattr(gateway, "delete_employee", failing_delete)

    result = await execute_cascade_deletion(gateway, snapshot, CascadeAction.DELETE, registry=registry)

    assert result.success is False
    assert result.rolled_back is True
    assert result.rollback_failed is False
    assert result.message == PARTIAL_ROLLBACK_MESSAGE.format(count=3)
    assert "3 permanently deleted records were not restored" in result.notifications
    assert count_rows(db, WorkItem, user_id=employee_id) == 0
    assert await gateway.get_employee(employee_id) is not None


class SerializedGateway(PersonnelGateway):
    """Gateway whose calls never overlap, so two sagas can share one session"""

    def __init__(self, db, lock):
        super().__init__(db)
        self._lock = lock

    async def _call(self, operation, fn, *args, commit=False):
        async with self._lock:
            return await super()._call(operation, fn, *args, commit=commit)


@pytest.mark.asyncio
async def test_concurrent_removal_of_last_two_admins_keeps_one(db, registry, admin_user, make_employee):
    second_admin_id = make_employee(full_name="Second Admin", role=Role.ADMIN).id
    gateway = SerializedGateway(db, asyncio.Lock())
    first = await gateway.get_employee(admin_user.id)
    second = await gateway.get_employee(second_admin_id)

    results = await asyncio.gather(
        execute_cascade_deletion(gateway, first, CascadeAction.DELETE, registry=registry),
        execute_cascade_deletion(gateway, second, CascadeAction.DELETE, registry=registry),
    )

    assert [r.success for r in results].count(True) == 1
    rejected = [r for r in results if not r.success]
    assert rejected[0].rejected is True
    assert await gateway.count_active_admins() == 1


@pytest.mark.asyncio
async def test_admin_floor_is_rechecked_after_claim(db, gateway, registry, admin_user, make_employee):
    """An admin snapshot that passed the guard earlier is re-checked under the claim"""
    second_admin_id = make_employee(full_name="Second Admin", role=Role.ADMIN).id
    first = await gateway.get_employee(admin_user.id)
    second = await gateway.get_employee(second_admin_id)

    removed = await execute_cascade_deletion(gateway, first, CascadeAction.DELETE, registry=registry)
    # Skip the caller-facing guard, as a request that passed it before the first removal would
    saga = CascadeDeletionSaga(gateway, second, CascadeAction.DELETE, registry=registry)
    result = await saga.run()

    assert removed.success is True
    assert result.success is False
    assert result.rejected is True
    assert LAST_ADMIN_ISSUE in result.error
    assert await gateway.count_active_admins() == 1


def test_registry_runs_one_admin_removal_at_a_time(registry):
    with registry.claim(1, is_admin=True):
        with pytest.raises(AdminRemovalInProgressError):
            with registry.claim(2, is_admin=True):
                pass
        with registry.claim(3):
            assert registry.is_active(3)

    with registry.claim(2, is_admin=True):
        assert registry.is_active(2)
