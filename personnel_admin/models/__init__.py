"""
Database models
"""
from personnel_admin.models.employee import Employee, Role
from personnel_admin.models.work_item import WorkItem, WorkItemStatus
from personnel_admin.models.calendar_event import CalendarEvent
from personnel_admin.models.audit_log import AuditLog

__all__ = [
    "Employee",
    "Role",
    "WorkItem",
    "WorkItemStatus",
    "CalendarEvent",
    "AuditLog",
]
