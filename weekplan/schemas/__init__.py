from weekplan.schemas.employee import EmployeeResponse
from weekplan.schemas.day_entry import DayPatch, BulkDayPatch, DayEntryResponse
from weekplan.schemas.week import WeekGenerate, WeekCopy, WeekStatusUpdate, WeekResponse, EmployeeWeekRow, WeekGridResponse
from weekplan.schemas.leave_request import (
    LeaveRequestCreate,
    LeaveRequestUpdate,
    LeaveDecision,
    LeaveRequestResponse,
    LeaveRequestOutcomeResponse,
    ConflictCheckRequest,
    ConflictResponse,
    ConflictCheckResponse,
)

__all__ = [
    "EmployeeResponse",
    "DayPatch", "BulkDayPatch", "DayEntryResponse",
    "WeekGenerate", "WeekCopy", "WeekStatusUpdate", "WeekResponse", "EmployeeWeekRow", "WeekGridResponse",
    "LeaveRequestCreate", "LeaveRequestUpdate", "LeaveDecision", "LeaveRequestResponse", "LeaveRequestOutcomeResponse",
    "ConflictCheckRequest", "ConflictResponse", "ConflictCheckResponse",
]
