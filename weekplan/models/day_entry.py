from sqlalchemy import Column, Integer, ForeignKey, Date, Time, DateTime, JSON, UniqueConstraint, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from weekplan.core.database import Base
from weekplan.services.calendar import weekday_name as _weekday_name


class DayType(str, enum.Enum):
    NORMAL = "normal"
    REST = "rest"
    COMPENSATED = "compensated"
    VACATION = "vacation"
    PERMISSION = "permission"


class ShiftPeriod(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


class Provenance(str, enum.Enum):
    MANUAL = "manual"
    FROM_APPROVED_REQUEST = "from_approved_request"


class DayEntry(Base):
    __tablename__ = "day_entries"
    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_day_entry_employee_date"),
        Index("ix_day_entries_week_employee", "week_id", "employee_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # NULL when a leave request was approved for a date no week covers yet
    week_id = Column(Integer, ForeignKey("week_schedules.id", ondelete="CASCADE"), nullable=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    date = Column(Date, nullable=False)
    shift_start = Column(Time, nullable=True)
    shift_end = Column(Time, nullable=True)
    lunch_start = Column(Time, nullable=True)
    lunch_end = Column(Time, nullable=True)
    day_type = Column(SQLEnum(DayType, values_callable=lambda obj: [e.value for e in obj]), default=DayType.NORMAL, nullable=False)
    shift_period = Column(SQLEnum(ShiftPeriod, values_callable=lambda obj: [e.value for e in obj]), nullable=True)
    provenance = Column(SQLEnum(Provenance, values_callable=lambda obj: [e.value for e in obj]), default=Provenance.MANUAL, nullable=False)
    source_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True)
    # Manual day a request stamp replaced; restored when the request is rolled back
    prior_slot = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    week = relationship("WeekSchedule", back_populates="entries")
    employee = relationship("Employee", back_populates="day_entries")
    source_request = relationship("LeaveRequest")

    @property
    def weekday_name(self) -> str:
        return _weekday_name(self.date)

    @property
    def is_locked(self) -> bool:
        """Request-derived days cannot be edited directly."""
        return self.provenance == Provenance.FROM_APPROVED_REQUEST

    def __repr__(self):
        return f"<DayEntry(employee_id={self.employee_id}, date={self.date}, {self.day_type}, {self.provenance})>"
