from weekplan.models.employee import Employee, EmployeeRole, EmployeeStatus
from weekplan.models.week_schedule import WeekSchedule, WeekStatus
from weekplan.models.day_entry import DayEntry, DayType, ShiftPeriod, Provenance
from weekplan.models.leave_request import LeaveRequest, LeaveType, LeaveStatus

__all__ = [
    "Employee",
    "EmployeeRole",
    "EmployeeStatus",
    "WeekSchedule",
    "WeekStatus",
    "DayEntry",
    "DayType",
    "ShiftPeriod",
    "Provenance",
    "LeaveRequest",
    "LeaveType",
    "LeaveStatus",
]
