"""
Cascade deletion schemas
"""
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator
import enum


class CascadeAction(str, enum.Enum):
    TRANSFER = "transfer"
    DELETE = "delete"


class CascadeDeleteRequest(BaseModel):
    """Schema for a cascade deletion request"""
    action: CascadeAction = Field(..., description="How to resolve the employee's work items")
    target_employee_id: Optional[int] = Field(
        None,
        description="Employee receiving the work items (required for transfer)"
    )

    @model_validator(mode="after")
    def validate_target(self):
        """Delete mode never carries a target"""
        if self.action == CascadeAction.DELETE and self.target_employee_id is not None:
            raise ValueError("target_employee_id is only allowed for the transfer action")
        return self


class CascadeDeleteResponse(BaseModel):
    """Outcome of a cascade deletion, without the internal step trace"""
    success: bool
    error: Optional[str] = None
    message: str
    affected_count: int = 0
    rolled_back: bool = False
    rollback_failed: bool = False
    notifications: List[str] = Field(default_factory=list)


class DeletionImpactOut(BaseModel):
    """Advisory counts of records that reference an employee"""
    employee_id: int
    work_item_count: int
    event_count: int
    total_impact: int
    delete_mode_reversible: bool = Field(
        default=False,
        description="Work items and events removed in delete mode cannot be restored"
    )


class DeletionPrerequisitesOut(BaseModel):
    """Result of the caller-facing deletion guard"""
    employee_id: int
    can_delete: bool
    issues: List[str] = Field(default_factory=list)
