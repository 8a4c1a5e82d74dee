from pydantic import BaseModel, field_validator, field_serializer
from typing import Optional
from datetime import date, time

from weekplan.models.day_entry import DayType, ShiftPeriod, Provenance

TIME_FIELDS = ("shift_start", "shift_end", "lunch_start", "lunch_end")


class DayPatch(BaseModel):
    """Fields a supervisor may change on a day. Unset fields keep their value."""

    day_type: Optional[DayType] = None
    shift_period: Optional[ShiftPeriod] = None
    shift_start: Optional[time] = None
    shift_end: Optional[time] = None
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None

    @field_validator(*TIME_FIELDS, mode="before")
    @classmethod
    def _blank_is_null(cls, v):
        # The console sends "" for cleared time inputs
        if isinstance(v, str) and not v.strip():
            return None
        return v

    class Config:
        extra = "forbid"


class BulkDayPatch(DayPatch):
    dates: list[date]


class DayEntryResponse(BaseModel):
    id: int
    week_id: Optional[int] = None
    employee_id: int
    date: date
    weekday_name: str
    shift_start: Optional[time] = None
    shift_end: Optional[time] = None
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None
    day_type: DayType
    shift_period: Optional[ShiftPeriod] = None
    provenance: Provenance
    source_request_id: Optional[int] = None

    @field_serializer(*TIME_FIELDS)
    def _hh_mm(self, v: Optional[time]) -> Optional[str]:
        return v.strftime("%H:%M") if v is not None else None

    class Config:
        from_attributes = True
