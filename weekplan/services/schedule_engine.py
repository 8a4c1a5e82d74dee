"""
Weekly Schedule Engine

Generates draft weeks (fresh or copied from another week), applies
supervisor edits to individual days, drives the draft/active/historical
lifecycle and assembles the employee-by-day grid the console renders.

Days stamped by approved leave requests are locked here: only the leave
request lifecycle may change them.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union
from datetime import date, datetime, timedelta, timezone
from sqlalchemy.orm import Session, joinedload

from weekplan.config import get_settings
from weekplan.core.exceptions import (
    ConflictError,
    InvalidRangeError,
    InvalidStateError,
    LockedError,
    NotFoundError,
    PermissionDeniedError,
)
from weekplan.models.day_entry import DayEntry, DayType, ShiftPeriod, Provenance
from weekplan.models.employee import Employee, EmployeeRole, EmployeeStatus
from weekplan.models.leave_request import LeaveRequest, LeaveStatus
from weekplan.models.week_schedule import WeekSchedule, WeekStatus
from weekplan.schemas.day_entry import DayPatch, TIME_FIELDS
from weekplan.services.base import BaseService, is_privileged
from weekplan.services.calendar import (
    DateLike,
    parse_iso,
    monday_of,
    week_dates,
    format_iso,
    format_short,
    is_today,
)
from weekplan.services.day_store import DayStore, DaySlot, template_slot, request_slot, validate_slot

settings = get_settings()
logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    WeekStatus.DRAFT: {WeekStatus.ACTIVE},
    WeekStatus.ACTIVE: {WeekStatus.HISTORICAL, WeekStatus.DRAFT},
    WeekStatus.HISTORICAL: set(),
}


@dataclass
class GridRow:
    employee_id: int
    employee_name: str
    employee_role: EmployeeRole
    days: Dict[date, DayEntry] = field(default_factory=dict)


@dataclass
class WeekGrid:
    """A week plus its entries pivoted to one row per employee."""
    week: WeekSchedule
    dates: List[date]
    today: Optional[date]
    is_current_week: bool
    employees: List[GridRow] = field(default_factory=list)


class ScheduleEngine(BaseService):
    """Week generation, day edits and week lifecycle."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.store = DayStore(db)

    # ── Lookups ─────────────────────────────────────────────────────
    def get_week(self, week_id: int) -> WeekSchedule:
        week = self.db.query(WeekSchedule).filter(WeekSchedule.id == week_id).first()
        if not week:
            raise NotFoundError(f"Week {week_id} not found", field="week_id", value=week_id)
        return week

    def get_week_by_date(self, day: DateLike) -> WeekSchedule:
        day = parse_iso(day)
        week = self.store.week_covering(day)
        if not week:
            raise NotFoundError(f"No week covers {format_iso(day)}", field="date", value=day)
        return week

    def get_current_week(self, as_of: DateLike) -> WeekSchedule:
        """The active week containing ``as_of``."""
        day = parse_iso(as_of)
        week = self.db.query(WeekSchedule).filter(
            WeekSchedule.status == WeekStatus.ACTIVE,
            WeekSchedule.start_date <= day,
            WeekSchedule.end_date >= day
        ).order_by(WeekSchedule.activated_at.desc()).first()
        if not week:
            raise NotFoundError(f"No active week covers {format_iso(day)}", field="date", value=day)
        return week

    def list_visible_weeks(self, role: Union[EmployeeRole, str], as_of: DateLike) -> List[WeekSchedule]:
        """
        Weeks starting on or after the Monday before the current week.

        Supervisors and admins see every status; everyone else only sees
        active weeks.
        """
        cutoff = monday_of(as_of) - timedelta(days=7)
        query = self.db.query(WeekSchedule).filter(WeekSchedule.start_date >= cutoff)
        if not is_privileged(role):
            query = query.filter(WeekSchedule.status == WeekStatus.ACTIVE)
        return query.order_by(WeekSchedule.start_date.desc()).all()

    # ── Generation ──────────────────────────────────────────────────
    def generate_week(
        self,
        start_date: DateLike,
        created_by: int,
        copy_from_id: Optional[int] = None
    ) -> WeekSchedule:
        """
        Create a draft week with one entry per active employee per day.

        Days come from the default template, or from ``copy_from_id`` shifted
        to the new dates (request-derived days are not copied). Approved
        leave requests overlapping the new week are stamped afterwards, so
        they always win over template or copied content.

        Any existing week overlapping the new dates blocks generation,
        historical weeks included: each employee has one entry per date.
        """
        start = parse_iso(start_date, "start_date")
        if start.weekday() != 0:
            raise InvalidRangeError(
                f"{format_iso(start)} is not a Monday",
                field="start_date",
                value=start,
            )
        dates = week_dates(start)
        end = dates[-1]

        with self.transaction():
            existing = self.db.query(WeekSchedule).filter(
                WeekSchedule.start_date <= end,
                WeekSchedule.end_date >= start
            ).first()
            if existing:
                raise ConflictError(
                    f"Week {existing.id} ({existing.status.value}) already covers {format_iso(start)}",
                    field="start_date",
                    value=start,
                )

            source = self.get_week(copy_from_id) if copy_from_id is not None else None

            week = WeekSchedule(
                name=f"Week {format_short(start)} - {format_short(end)}",
                start_date=start,
                end_date=end,
                status=WeekStatus.DRAFT,
                created_by=created_by,
            )
            self.db.add(week)
            self.db.flush()

            employees = self.db.query(Employee).filter(
                Employee.status == EmployeeStatus.ACTIVE
            ).order_by(Employee.id).all()
            employee_ids = {e.id for e in employees}

            copied: Dict[tuple, DaySlot] = {}
            if source is not None:
                offset = start - source.start_date
                for entry in self.store.entries_for_week(source.id):
                    if entry.is_locked or entry.employee_id not in employee_ids:
                        continue
                    copied[(entry.employee_id, entry.date + offset)] = DaySlot.from_entry(entry)

            items = []
            for employee in employees:
                for day in dates:
                    slot = copied.get((employee.id, day)) or template_slot()
                    items.append((employee.id, day, slot))
            self.store.bulk_put(items, week_id=week.id)

            stamped = self._stamp_approved_requests(week, employee_ids)

        self.db.refresh(week)
        logger.info(
            "Generated week %s (%s) for %d employees%s, %d request-derived day(s)",
            week.id, week.name, len(employees),
            f" from week {source.id}" if source is not None else "",
            stamped
        )
        return week

    def copy_week(self, week_id: int, new_start_date: DateLike, created_by: int) -> WeekSchedule:
        return self.generate_week(new_start_date, created_by, copy_from_id=week_id)

    def _stamp_approved_requests(self, week: WeekSchedule, employee_ids: Iterable[int]) -> int:
        requests = self.db.query(LeaveRequest).filter(
            LeaveRequest.status == LeaveStatus.APPROVED,
            LeaveRequest.employee_id.in_(list(employee_ids)),
            LeaveRequest.date_start <= week.end_date,
            LeaveRequest.date_end >= week.start_date
        ).order_by(LeaveRequest.approved_at, LeaveRequest.id).all()

        items = []
        for request in requests:
            for day in week_dates(week.start_date):
                if request.date_start <= day <= request.date_end:
                    items.append((request.employee_id, day, request_slot(request.id, request.stamped_day_type)))
        self.store.bulk_put(items, week_id=week.id)
        return len(items)

    # ── Day edits ───────────────────────────────────────────────────
    def edit_day(
        self,
        week_id: int,
        employee_id: int,
        day: DateLike,
        patch: DayPatch,
        requesting_role: Union[EmployeeRole, str]
    ) -> DayEntry:
        """Apply a supervisor edit to one day of one employee."""
        self._require_privileged(requesting_role)
        day = parse_iso(day)

        with self.transaction():
            week = self.get_week(week_id)
            entry = self._editable_entry(week, employee_id, day)
            if entry.is_locked:
                raise LockedError(
                    f"{format_iso(day)} comes from approved request #{entry.source_request_id}; "
                    "reject or correct the request first",
                    field="date",
                    value=day,
                )
            slot = self._merge_patch(entry, patch.model_dump(exclude_unset=True))
            entry = self.store.put(employee_id, day, slot, week_id=week.id)

        self.db.refresh(entry)
        logger.info("Edited week %s employee %s %s -> %s", week_id, employee_id, day, entry.day_type.value)
        return entry

    def edit_day_bulk(
        self,
        week_id: int,
        employee_id: int,
        dates: Iterable[DateLike],
        patch: DayPatch,
        requesting_role: Union[EmployeeRole, str]
    ) -> List[DayEntry]:
        """
        Apply the same edit to several days of one employee.

        Request-derived days are skipped silently; every other day is
        written in one transaction. Returns the entries actually changed.
        """
        self._require_privileged(requesting_role)
        days = sorted({parse_iso(d) for d in dates})
        changes = patch.model_dump(exclude_unset=True, exclude={"dates"})

        skipped = []
        with self.transaction():
            week = self.get_week(week_id)
            items = []
            for day in days:
                entry = self._editable_entry(week, employee_id, day)
                if entry.is_locked:
                    skipped.append(day)
                    continue
                items.append((employee_id, day, self._merge_patch(entry, changes)))
            changed = self.store.bulk_put(items, week_id=week.id)

        for entry in changed:
            self.db.refresh(entry)
        if skipped:
            logger.info(
                "Bulk edit on week %s employee %s skipped %d request-derived day(s): %s",
                week_id, employee_id, len(skipped), ", ".join(format_iso(d) for d in skipped)
            )
        return changed

    def _editable_entry(self, week: WeekSchedule, employee_id: int, day: date) -> DayEntry:
        if not week.covers(day):
            raise InvalidRangeError(
                f"{format_iso(day)} is outside week {format_iso(week.start_date)} to {format_iso(week.end_date)}",
                field="date",
                value=day,
            )
        entry = self.store.get(employee_id, day)
        if entry is None or entry.week_id != week.id:
            raise NotFoundError(
                f"Employee {employee_id} has no entry on {format_iso(day)} in week {week.id}",
                field="employee_id",
                value=employee_id,
            )
        return entry

    def _merge_patch(self, entry: DayEntry, changes: dict) -> DaySlot:
        """
        Overlay a patch on the current entry and normalize the result.

        Non-normal days lose their times. A day switched back to normal, or
        moved to another shift period, without explicit times gets the
        template for its period. Afternoon shifts never carry lunch.
        """
        if changes.get("day_type") is None:
            changes.pop("day_type", None)

        slot = DaySlot.from_entry(entry)
        for name, value in changes.items():
            setattr(slot, name, value)

        if slot.day_type != DayType.NORMAL:
            for name in TIME_FIELDS:
                setattr(slot, name, None)
            slot.shift_period = None
        else:
            if slot.shift_period is None:
                slot.shift_period = ShiftPeriod.MORNING
            period_changed = slot.shift_period != entry.shift_period
            times_given = "shift_start" in changes or "shift_end" in changes
            if (entry.day_type != DayType.NORMAL or period_changed) and not times_given:
                template = template_slot(slot.shift_period)
                slot.shift_start, slot.shift_end = template.shift_start, template.shift_end
                if "lunch_start" not in changes and "lunch_end" not in changes:
                    slot.lunch_start, slot.lunch_end = template.lunch_start, template.lunch_end
            if slot.shift_period == ShiftPeriod.AFTERNOON:
                slot.lunch_start = slot.lunch_end = None

        slot.provenance = Provenance.MANUAL
        slot.source_request_id = None
        validate_slot(slot)
        return slot

    def _require_privileged(self, role: Union[EmployeeRole, str]) -> None:
        if not is_privileged(role):
            raise PermissionDeniedError(
                "Only supervisors and admins can edit schedules",
                field="role",
                value=getattr(role, "value", role),
            )

    # ── Lifecycle ───────────────────────────────────────────────────
    def change_week_status(
        self,
        week_id: int,
        new_status: Union[WeekStatus, str],
        now: Optional[datetime] = None
    ) -> WeekSchedule:
        """Move a week through draft -> active -> historical (active may return to draft)."""
        new_status = WeekStatus(new_status)
        now = now or datetime.now(timezone.utc)

        with self.transaction():
            week = self.get_week(week_id)
            if new_status not in ALLOWED_TRANSITIONS[week.status]:
                raise InvalidStateError(
                    f"Cannot move week {week_id} from {week.status.value} to {new_status.value}",
                    field="status",
                    value=new_status.value,
                )

            if new_status == WeekStatus.ACTIVE:
                if settings.single_active_week:
                    demoted = self.db.query(WeekSchedule).filter(
                        WeekSchedule.status == WeekStatus.ACTIVE,
                        WeekSchedule.id != week.id
                    ).all()
                    for other in demoted:
                        other.status = WeekStatus.HISTORICAL
                        logger.info("Week %s moved to historical by activation of week %s", other.id, week.id)
                week.activated_at = now
            elif new_status == WeekStatus.DRAFT:
                week.activated_at = None

            previous = week.status
            week.status = new_status

        self.db.refresh(week)
        logger.info("Week %s: %s -> %s", week_id, previous.value, new_status.value)
        return week

    def delete_week(self, week_id: int) -> None:
        """Delete a draft week together with all of its entries."""
        with self.transaction():
            week = self.get_week(week_id)
            if week.status != WeekStatus.DRAFT:
                raise InvalidStateError(
                    f"Only draft weeks can be deleted; week {week_id} is {week.status.value}",
                    field="status",
                    value=week.status.value,
                )
            entry_count = len(week.entries)
            self.db.delete(week)
        logger.info("Deleted draft week %s and %d entries", week_id, entry_count)

    # ── Presentation ────────────────────────────────────────────────
    def build_grid(
        self,
        week_id: int,
        now: Union[date, datetime],
        role: Optional[Union[EmployeeRole, str]] = None,
        search: Optional[str] = None
    ) -> WeekGrid:
        """
        Pivot a week's entries into one row per employee, sorted by name.

        ``role`` and ``search`` (case-insensitive name match) filter rows.
        """
        week = self.get_week(week_id)
        dates = week_dates(week.start_date)
        today = next((d for d in dates if is_today(d, now)), None)

        entries = self.db.query(DayEntry).options(
            joinedload(DayEntry.employee)
        ).filter(DayEntry.week_id == week.id).all()

        needle = search.strip().lower() if search else None
        role_filter = EmployeeRole(role) if role else None

        rows: Dict[int, GridRow] = {}
        for entry in entries:
            employee = entry.employee
            if role_filter is not None and employee.role != role_filter:
                continue
            if needle and needle not in employee.full_name.lower():
                continue
            row = rows.get(employee.id)
            if row is None:
                row = rows[employee.id] = GridRow(
                    employee_id=employee.id,
                    employee_name=employee.full_name,
                    employee_role=employee.role,
                )
            row.days[entry.date] = entry

        return WeekGrid(
            week=week,
            dates=dates,
            today=today,
            is_current_week=today is not None,
            employees=sorted(rows.values(), key=lambda r: (r.employee_name.lower(), r.employee_id)),
        )
