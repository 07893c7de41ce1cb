"""
Employee model
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from personnel_admin.db.base import Base


class Role(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    nip = Column(String, unique=True, nullable=True, index=True)  # Government personnel number
    grade = Column(String, nullable=True)  # Grade / rank code
    position = Column(String, nullable=True)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, nullable=True)
    role = Column(String, nullable=False, default=Role.USER.value)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    # Relationships (no ORM cascade: dependent rows are resolved by the cascade deletion service)
    work_items = relationship("WorkItem", back_populates="owner", passive_deletes="all")
    created_events = relationship("CalendarEvent", back_populates="creator", passive_deletes="all")
