"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from personnel_admin.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_label = Column(String, nullable=False)  # Display name of the operator, e.g. "System Admin"
    action = Column(String, nullable=False)  # e.g. "WORKLOAD_TRANSFER", "EMPLOYEE_DELETED"
    table_name = Column(String, nullable=False)  # e.g. "employees"
    record_id = Column(Integer, nullable=True)  # No FK: entries must outlive deleted records
    details = Column(Text, nullable=True)
    meta_json = Column(JSON, nullable=True)
    # Note: server_default handled by migration (CURRENT_TIMESTAMP)
    created_at = Column(DateTime(timezone=True), nullable=False)
