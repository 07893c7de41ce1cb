"""
Work item (workload) model
"""
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from personnel_admin.db.base import Base


class WorkItemStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class WorkItem(Base):
    __tablename__ = "work_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # Category
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=WorkItemStatus.PENDING.value)
    received_date = Column(Date, nullable=True)
    deadline_date = Column(Date, nullable=True)
    function_tag = Column(String, nullable=True)  # Functional classification
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    owner = relationship("Employee", back_populates="work_items")
