"""
Employee directory endpoints, including the read-only deletion advisories
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, HTTPException, status
from sqlalchemy.orm import Session
from personnel_admin.core.deps import get_db, get_gateway, get_current_user, require_admin
from personnel_admin.db.gateway import PersonnelGateway
from personnel_admin.models.employee import Employee
from personnel_admin.schemas.cascade import DeletionImpactOut, DeletionPrerequisitesOut
from personnel_admin.schemas.employee import EmployeeOut
from personnel_admin.services.deletion_guard import validate_deletion_prerequisites
from personnel_admin.services.deletion_impact_service import get_deletion_impact, list_transfer_targets

router = APIRouter()


def _get_employee_or_404(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Employee with id {employee_id} not found"
        )
    return employee


@router.get("", response_model=List[EmployeeOut])
async def list_employees_endpoint(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    active_only: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """List employees ordered by full name"""
    query = db.query(Employee)
    if active_only:
        query = query.filter(Employee.active == True)  # noqa: E712
    return query.order_by(Employee.full_name.asc()).offset(skip).limit(limit).all()


@router.get("/{employee_id}", response_model=EmployeeOut)
async def get_employee_endpoint(
    employee_id: int,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    """Get a single employee"""
    return _get_employee_or_404(db, employee_id)


@router.get("/{employee_id}/deletion-impact", response_model=DeletionImpactOut)
async def deletion_impact_endpoint(
    employee_id: int,
    db: Session = Depends(get_db),
    gateway: PersonnelGateway = Depends(get_gateway),
    current_user: Employee = Depends(require_admin)
):
    """
    Count work items and calendar events that reference an employee (ADMIN-only)

    Advisory only: read failures are reported as zero counts.
    """
    _get_employee_or_404(db, employee_id)
    impact = await get_deletion_impact(gateway, employee_id)
    return DeletionImpactOut(
        employee_id=employee_id,
        work_item_count=impact.work_item_count,
        event_count=impact.event_count,
        total_impact=impact.total_impact,
    )


@router.get("/{employee_id}/transfer-targets", response_model=List[EmployeeOut])
async def transfer_targets_endpoint(
    employee_id: int,
    gateway: PersonnelGateway = Depends(get_gateway),
    current_user: Employee = Depends(require_admin)
):
    """Active employees that can receive this employee's work items (ADMIN-only)"""
    targets = await list_transfer_targets(gateway, employee_id)
    return [EmployeeOut(**target.model_dump()) for target in targets]


@router.get("/{employee_id}/deletion-prerequisites", response_model=DeletionPrerequisitesOut)
async def deletion_prerequisites_endpoint(
    employee_id: int,
    db: Session = Depends(get_db),
    gateway: PersonnelGateway = Depends(get_gateway),
    current_user: Employee = Depends(require_admin)
):
    """Check whether an employee may be removed at all (ADMIN-only)"""
    _get_employee_or_404(db, employee_id)
    prerequisites = await validate_deletion_prerequisites(gateway, employee_id)
    return DeletionPrerequisitesOut(
        employee_id=employee_id,
        can_delete=prerequisites.can_delete,
        issues=prerequisites.issues,
    )
