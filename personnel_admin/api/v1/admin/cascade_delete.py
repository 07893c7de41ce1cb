"""
Admin endpoints for removing an employee together with its dependent data
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from personnel_admin.core.deps import get_gateway, require_admin
from personnel_admin.db.gateway import PersonnelGateway
from personnel_admin.models.employee import Employee
from personnel_admin.schemas.cascade import CascadeDeleteRequest, CascadeDeleteResponse
from personnel_admin.services.cascade_deletion_service import (
    CascadeDeletionResult,
    execute_cascade_deletion,
    retry_cascade_deletion,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(result: CascadeDeletionResult) -> JSONResponse:
    """Map a saga result onto an HTTP status without exposing the step trace"""
    if result.success:
        status_code = status.HTTP_200_OK
    elif result.already_running:
        status_code = status.HTTP_409_CONFLICT
    elif result.rejected:
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    body = CascadeDeleteResponse(
        success=result.success,
        error=result.error,
        message=result.message,
        affected_count=result.affected_count,
        rolled_back=result.rolled_back,
        rollback_failed=result.rollback_failed,
        notifications=result.notifications,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _load_target(gateway: PersonnelGateway, request: CascadeDeleteRequest):
    if request.target_employee_id is None:
        return None
    target = await gateway.get_employee(request.target_employee_id)
    if target is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Target employee with id {request.target_employee_id} not found"
        )
    return target


@router.post("/{employee_id}/cascade-delete", response_model=CascadeDeleteResponse)
async def cascade_delete_endpoint(
    employee_id: int,
    request: CascadeDeleteRequest,
    gateway: PersonnelGateway = Depends(get_gateway),
    current_user: Employee = Depends(require_admin)
):
    """
    Permanently delete an employee (ADMIN-only)

    Work items are transferred to ``target_employee_id`` or deleted, calendar
    events created by the employee are deleted, then the employee row is
    removed and verified. Any failure rolls back the reversible steps.
    """
    employee = await gateway.get_employee(employee_id)
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee with id {employee_id} not found"
        )
    target = await _load_target(gateway, request)

    logger.info(
        "Cascade deletion requested by %s: employee=%s action=%s target=%s",
        current_user.id, employee_id, request.action.value, request.target_employee_id
    )
    result = await execute_cascade_deletion(
        gateway,
        employee,
        request.action,
        target=target,
        actor_label=current_user.full_name,
    )
    return _to_response(result)


@router.post("/{employee_id}/cascade-delete/retry", response_model=CascadeDeleteResponse)
async def retry_cascade_delete_endpoint(
    employee_id: int,
    request: CascadeDeleteRequest,
    gateway: PersonnelGateway = Depends(get_gateway),
    current_user: Employee = Depends(require_admin)
):
    """
    Retry a failed cascade deletion (ADMIN-only)

    An employee that no longer exists is reported as already deleted.
    """
    employee = await gateway.get_employee(employee_id)
    if employee is None:
        logger.info("Retry for employee %s: already deleted", employee_id)
        return CascadeDeleteResponse(
            success=True,
            message=f"Employee {employee_id} is already deleted",
        )
    target = await _load_target(gateway, request)

    result = await retry_cascade_deletion(
        gateway,
        employee,
        request.action,
        target=target,
        actor_label=current_user.full_name,
    )
    return _to_response(result)
