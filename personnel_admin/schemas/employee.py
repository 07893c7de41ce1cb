"""
Employee schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from personnel_admin.models.employee import Role


class EmployeeOut(BaseModel):
    """Schema for employee output"""
    id: int
    full_name: str
    nip: Optional[str] = None
    grade: Optional[str] = None
    position: Optional[str] = None
    username: str
    email: Optional[str] = None
    role: Role
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EmployeeSnapshot(BaseModel):
    """
    Full, immutable copy of an employee row.

    Captured before any cascade mutation so the identity record can be
    recreated with its original id and field values.
    """
    id: int
    full_name: str
    nip: Optional[str] = None
    grade: Optional[str] = None
    position: Optional[str] = None
    username: str
    email: Optional[str] = None
    role: Role = Field(default=Role.USER)
    active: bool = True
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
