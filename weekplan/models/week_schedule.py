from sqlalchemy import Column, Integer, String, ForeignKey, Date, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from weekplan.core.database import Base


class WeekStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    HISTORICAL = "historical"


class WeekSchedule(Base):
    __tablename__ = "week_schedules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False, index=True)  # Always a Monday
    end_date = Column(Date, nullable=False)  # start_date + 6 days
    status = Column(SQLEnum(WeekStatus, values_callable=lambda obj: [e.value for e in obj]), default=WeekStatus.DRAFT, nullable=False)
    created_by = Column(Integer, ForeignKey("employees.id"), nullable=False)
    activated_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    creator = relationship("Employee")
    entries = relationship("DayEntry", back_populates="week", cascade="all")

    def covers(self, day) -> bool:
        return self.start_date <= day <= self.end_date

    def __repr__(self):
        return f"<WeekSchedule(id={self.id}, week={self.start_date}, status={self.status})>"
