from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import date, datetime

from weekplan.models.employee import EmployeeRole
from weekplan.models.week_schedule import WeekStatus
from weekplan.schemas.day_entry import DayEntryResponse


class WeekGenerate(BaseModel):
    start_date: date
    copy_from_id: Optional[int] = None


class WeekCopy(BaseModel):
    new_start_date: date


class WeekStatusUpdate(BaseModel):
    status: WeekStatus


class WeekResponse(BaseModel):
    id: int
    name: str
    start_date: date
    end_date: date
    status: WeekStatus
    created_by: int
    activated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmployeeWeekRow(BaseModel):
    employee_id: int
    employee_name: str
    employee_role: EmployeeRole
    days: Dict[date, DayEntryResponse] = {}

    class Config:
        from_attributes = True


class WeekGridResponse(WeekResponse):
    dates: List[date]
    today: Optional[date] = None
    is_current_week: bool = False
    employees: List[EmployeeWeekRow] = []
