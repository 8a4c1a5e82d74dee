"""
Schedule Day Store

Authoritative map from (employee_id, date) to DayEntry. Writes are upserts
and perform no permission or provenance checks: the schedule engine and the
leave-request lifecycle decide *whether* to write, the store only decides
*how*. Stamping a request over a manual day records that day so a
later rollback can put it back.

Multi-row writes are flushed together inside the caller's transaction, so
either every entry of a batch is committed or none is.
"""

import logging
from dataclasses import dataclass, fields
from typing import Dict, Iterable, List, Optional, Tuple
from datetime import date, time
from sqlalchemy.orm import Session

from weekplan.config import get_settings
from weekplan.core.exceptions import InvalidRangeError
from weekplan.models.day_entry import DayEntry, DayType, ShiftPeriod, Provenance
from weekplan.models.week_schedule import WeekSchedule

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class DaySlot:
    """The editable content of a day, detached from any row."""
    day_type: DayType = DayType.NORMAL
    shift_period: Optional[ShiftPeriod] = ShiftPeriod.MORNING
    shift_start: Optional[time] = None
    shift_end: Optional[time] = None
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None
    provenance: Provenance = Provenance.MANUAL
    source_request_id: Optional[int] = None

    @classmethod
    def from_entry(cls, entry: DayEntry) -> "DaySlot":
        return cls(**{f.name: getattr(entry, f.name) for f in fields(cls)})

    def apply_to(self, entry: DayEntry) -> None:
        for f in fields(self):
            setattr(entry, f.name, getattr(self, f.name))

    def to_record(self) -> dict:
        """JSON-safe form of a manual slot, kept in ``DayEntry.prior_slot``."""
        return {
            "day_type": self.day_type.value,
            "shift_period": self.shift_period.value if self.shift_period else None,
            **{name: _hh_mm(getattr(self, name)) for name in _TIME_NAMES},
        }

    @classmethod
    def from_record(cls, record: dict) -> "DaySlot":
        return cls(
            day_type=DayType(record["day_type"]),
            shift_period=ShiftPeriod(record["shift_period"]) if record.get("shift_period") else None,
            **{name: _clock(record[name]) if record.get(name) else None for name in _TIME_NAMES},
        )


_TIME_NAMES = ("shift_start", "shift_end", "lunch_start", "lunch_end")


def _hh_mm(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


def _clock(value: str) -> time:
    return time.fromisoformat(value)


def template_slot(period: Optional[ShiftPeriod] = None) -> DaySlot:
    """Default working day: 08:00-17:00 with lunch, or 14:00-22:00 without."""
    if period == ShiftPeriod.AFTERNOON:
        return DaySlot(
            shift_period=ShiftPeriod.AFTERNOON,
            shift_start=_clock(settings.afternoon_shift_start),
            shift_end=_clock(settings.afternoon_shift_end),
        )
    return DaySlot(
        shift_period=ShiftPeriod.MORNING,
        shift_start=_clock(settings.default_shift_start),
        shift_end=_clock(settings.default_shift_end),
        lunch_start=_clock(settings.default_lunch_start),
        lunch_end=_clock(settings.default_lunch_end),
    )


def request_slot(request_id: int, day_type: DayType) -> DaySlot:
    """Day stamped by an approved leave request."""
    return DaySlot(
        day_type=day_type,
        shift_period=None,
        provenance=Provenance.FROM_APPROVED_REQUEST,
        source_request_id=request_id,
    )


def validate_slot(slot: DaySlot) -> None:
    """Raise InvalidRangeError unless the slot satisfies the day invariants."""
    times = (slot.shift_start, slot.shift_end, slot.lunch_start, slot.lunch_end)

    if (slot.provenance == Provenance.FROM_APPROVED_REQUEST) != (slot.source_request_id is not None):
        raise InvalidRangeError(
            "source_request_id must be set exactly when the day comes from an approved request",
            field="source_request_id",
            value=slot.source_request_id,
        )

    if slot.day_type != DayType.NORMAL:
        if any(t is not None for t in times):
            raise InvalidRangeError(
                f"A '{slot.day_type.value}' day cannot have shift or lunch times",
                field="day_type",
                value=slot.day_type.value,
            )
        return

    if slot.shift_start is None or slot.shift_end is None:
        raise InvalidRangeError("A normal day needs a shift start and end", field="shift_start", value=slot.shift_start)
    if slot.shift_start >= slot.shift_end:
        raise InvalidRangeError(
            f"Shift start {slot.shift_start:%H:%M} must be before shift end {slot.shift_end:%H:%M}",
            field="shift_end",
            value=slot.shift_end,
        )

    has_lunch = (slot.lunch_start is not None, slot.lunch_end is not None)
    if slot.shift_period == ShiftPeriod.AFTERNOON and any(has_lunch):
        raise InvalidRangeError("The afternoon shift has no lunch break", field="lunch_start", value=slot.lunch_start)
    if has_lunch[0] != has_lunch[1]:
        raise InvalidRangeError("Lunch start and end must be set together", field="lunch_end", value=slot.lunch_end)
    if all(has_lunch):
        if not (slot.shift_start <= slot.lunch_start < slot.lunch_end <= slot.shift_end):
            raise InvalidRangeError(
                f"Lunch {slot.lunch_start:%H:%M}-{slot.lunch_end:%H:%M} must fall inside the shift "
                f"{slot.shift_start:%H:%M}-{slot.shift_end:%H:%M}",
                field="lunch_start",
                value=slot.lunch_start,
            )


class DayStore:
    """Persistence for DayEntry rows keyed by (employee_id, date)."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, employee_id: int, day: date) -> Optional[DayEntry]:
        return self.db.query(DayEntry).filter(
            DayEntry.employee_id == employee_id,
            DayEntry.date == day
        ).first()

    def put(self, employee_id: int, day: date, slot: DaySlot, week_id: Optional[int] = None) -> DayEntry:
        """Overwrite (or create) the entry for one employee and date."""
        validate_slot(slot)
        entry = self._upsert(employee_id, day, slot, week_id)
        self.db.flush()
        return entry

    def bulk_put(
        self,
        items: Iterable[Tuple[int, date, DaySlot]],
        week_id: Optional[int] = None
    ) -> List[DayEntry]:
        """
        Write many entries as one unit.

        Every slot is validated before anything is written; if one is invalid
        nothing reaches the session. A key repeated in the batch keeps the
        last slot given for it.
        """
        batch: Dict[Tuple[int, date], DaySlot] = {}
        for employee_id, day, slot in items:
            validate_slot(slot)
            batch[(employee_id, day)] = slot

        entries = [
            self._upsert(employee_id, day, slot, week_id)
            for (employee_id, day), slot in batch.items()
        ]
        self.db.flush()
        return entries

    def delete(self, employee_id: int, day: date) -> bool:
        entry = self.get(employee_id, day)
        if entry is None:
            return False
        self.db.delete(entry)
        self.db.flush()
        return True

    def entries_for_week(self, week_id: int) -> List[DayEntry]:
        return self.db.query(DayEntry).filter(
            DayEntry.week_id == week_id
        ).order_by(DayEntry.employee_id, DayEntry.date).all()

    def entries_from_request(self, request_id: int) -> List[DayEntry]:
        return self.db.query(DayEntry).filter(
            DayEntry.source_request_id == request_id,
            DayEntry.provenance == Provenance.FROM_APPROVED_REQUEST
        ).order_by(DayEntry.date).all()

    def week_covering(self, day: date) -> Optional[WeekSchedule]:
        return self.db.query(WeekSchedule).filter(
            WeekSchedule.start_date <= day,
            WeekSchedule.end_date >= day
        ).order_by(WeekSchedule.id.desc()).first()

    def _upsert(self, employee_id: int, day: date, slot: DaySlot, week_id: Optional[int]) -> DayEntry:
        entry = self.get(employee_id, day)
        if entry is None:
            if week_id is None:
                week = self.week_covering(day)
                week_id = week.id if week else None
            entry = DayEntry(employee_id=employee_id, date=day, week_id=week_id)
            self.db.add(entry)
        elif week_id is not None:
            entry.week_id = week_id

        if slot.provenance == Provenance.FROM_APPROVED_REQUEST:
            # Stamping over another stamp keeps the manual day found under the first one
            if entry.provenance == Provenance.MANUAL:
                entry.prior_slot = DaySlot.from_entry(entry).to_record()
        else:
            entry.prior_slot = None
        slot.apply_to(entry)
        return entry

    def prior_slot(self, entry: DayEntry) -> Optional[DaySlot]:
        """The manual day an approved request replaced, if one was recorded."""
        if not entry.prior_slot:
            return None
        return DaySlot.from_record(entry.prior_slot)
