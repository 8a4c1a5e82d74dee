from sqlalchemy import Column, Integer, String, Text, ForeignKey, Date, DateTime, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from weekplan.core.database import Base
from weekplan.models.day_entry import DayType
from weekplan.models.employee import EmployeeRole


class LeaveType(str, enum.Enum):
    VACATION = "vacation"
    REST = "rest"
    COMPENSATION = "compensation"
    PERMISSION = "permission"
    LICENSE = "license"


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Day type stamped onto the schedule when a request of each type is approved
DAY_TYPE_BY_LEAVE_TYPE = {
    LeaveType.VACATION: DayType.VACATION,
    LeaveType.REST: DayType.REST,
    LeaveType.COMPENSATION: DayType.COMPENSATED,
    LeaveType.PERMISSION: DayType.PERMISSION,
    LeaveType.LICENSE: DayType.PERMISSION,
}


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        Index("ix_leave_requests_status_dates", "status", "date_start", "date_end"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    employee_role = Column(SQLEnum(EmployeeRole, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    type = Column(SQLEnum(LeaveType, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    date_start = Column(Date, nullable=False)
    date_end = Column(Date, nullable=False)
    reason = Column(Text)
    status = Column(SQLEnum(LeaveStatus, values_callable=lambda obj: [e.value for e in obj]), default=LeaveStatus.PENDING, nullable=False)
    approved_by = Column(Integer, ForeignKey("employees.id"))
    approved_at = Column(DateTime(timezone=True))

    # One-time status correction by a higher authority
    corrected_by = Column(Integer, ForeignKey("employees.id"))
    corrected_at = Column(DateTime(timezone=True))
    correction_note = Column(String(500))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    employee = relationship("Employee", back_populates="leave_requests", foreign_keys=[employee_id])
    approver = relationship("Employee", foreign_keys=[approved_by])
    corrector = relationship("Employee", foreign_keys=[corrected_by])

    @property
    def days(self) -> int:
        """Inclusive number of calendar days requested."""
        return (self.date_end - self.date_start).days + 1

    @property
    def employee_name(self):
        return self.employee.full_name if self.employee else None

    @property
    def approver_name(self):
        return self.approver.full_name if self.approver else None

    @property
    def stamped_day_type(self) -> DayType:
        return DAY_TYPE_BY_LEAVE_TYPE[self.type]

    def __repr__(self):
        return f"<LeaveRequest(id={self.id}, employee_id={self.employee_id}, {self.date_start} to {self.date_end}, status={self.status})>"
