from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from weekplan.api.deps import get_current_employee, get_today, require_supervisor_or_admin
from weekplan.core.database import get_db
from weekplan.core.exceptions import NotFoundError
from weekplan.models.employee import Employee, EmployeeRole
from weekplan.models.week_schedule import WeekStatus
from weekplan.schemas.day_entry import DayPatch, BulkDayPatch, DayEntryResponse
from weekplan.schemas.week import (
    WeekGenerate,
    WeekCopy,
    WeekStatusUpdate,
    WeekResponse,
    WeekGridResponse,
    EmployeeWeekRow,
)
from weekplan.services.base import is_privileged
from weekplan.services.schedule_engine import ScheduleEngine, WeekGrid

router = APIRouter()


def _grid_response(grid: WeekGrid) -> WeekGridResponse:
    return WeekGridResponse(
        **WeekResponse.model_validate(grid.week).model_dump(),
        dates=grid.dates,
        today=grid.today,
        is_current_week=grid.is_current_week,
        employees=[EmployeeWeekRow.model_validate(row) for row in grid.employees],
    )


def _visible_grid(
    engine: ScheduleEngine,
    week_id: int,
    viewer: Employee,
    today: date,
    role: Optional[EmployeeRole] = None,
    search: Optional[str] = None
) -> WeekGridResponse:
    week = engine.get_week(week_id)
    # Non-privileged employees only ever see active weeks
    if week.status != WeekStatus.ACTIVE and not is_privileged(viewer.role):
        raise NotFoundError(f"Week {week_id} not found", field="week_id", value=week_id)
    return _grid_response(engine.build_grid(week_id, today, role=role, search=search))


@router.get("/", response_model=List[WeekResponse])
async def list_weeks(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee),
    today: date = Depends(get_today)
):
    """List weeks starting from last week on. Drafts and history are visible to supervisors only."""
    engine = ScheduleEngine(db)
    return engine.list_visible_weeks(current_employee.role, today)


@router.get("/current", response_model=WeekGridResponse)
async def get_current_week(
    role: Optional[EmployeeRole] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee),
    today: date = Depends(get_today)
):
    """Grid of the active week containing today."""
    engine = ScheduleEngine(db)
    week = engine.get_current_week(today)
    return _grid_response(engine.build_grid(week.id, today, role=role, search=search))


@router.get("/by-date", response_model=WeekGridResponse)
async def get_week_by_date(
    day: str = Query(..., alias="date", description="Any date inside the week (YYYY-MM-DD)"),
    role: Optional[EmployeeRole] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee),
    today: date = Depends(get_today)
):
    """Grid of the week covering a date."""
    engine = ScheduleEngine(db)
    week = engine.get_week_by_date(day)
    return _visible_grid(engine, week.id, current_employee, today, role, search)


@router.get("/{week_id}", response_model=WeekGridResponse)
async def get_week(
    week_id: int,
    role: Optional[EmployeeRole] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee),
    today: date = Depends(get_today)
):
    """Get a week as an employee-by-day grid. Filter rows by role or name."""
    engine = ScheduleEngine(db)
    return _visible_grid(engine, week_id, current_employee, today, role, search)


@router.post("/generate", response_model=WeekResponse, status_code=status.HTTP_201_CREATED)
async def generate_week(
    data: WeekGenerate,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require_supervisor_or_admin)
):
    """
    Generate a draft week starting on a Monday (supervisor/admin only).

    Every active employee gets the default day, or the matching day of
    ``copy_from_id`` when given. Approved leave requests are applied on top.
    """
    engine = ScheduleEngine(db)
    return engine.generate_week(data.start_date, current_employee.id, copy_from_id=data.copy_from_id)


@router.post("/{week_id}/copy", response_model=WeekResponse, status_code=status.HTTP_201_CREATED)
async def copy_week(
    week_id: int,
    data: WeekCopy,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require_supervisor_or_admin)
):
    """Copy a week's manual days into a new draft week (supervisor/admin only)."""
    engine = ScheduleEngine(db)
    return engine.copy_week(week_id, data.new_start_date, current_employee.id)


@router.put("/{week_id}/status", response_model=WeekResponse, dependencies=[Depends(require_supervisor_or_admin)])
async def change_week_status(
    week_id: int,
    data: WeekStatusUpdate,
    db: Session = Depends(get_db)
):
    """Activate, archive or return a week to draft (supervisor/admin only)."""
    engine = ScheduleEngine(db)
    return engine.change_week_status(week_id, data.status)


@router.delete("/{week_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_supervisor_or_admin)])
async def delete_week(week_id: int, db: Session = Depends(get_db)):
    """Delete a draft week and its days (supervisor/admin only)."""
    engine = ScheduleEngine(db)
    engine.delete_week(week_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{week_id}/employees/{employee_id}/days/{day}", response_model=DayEntryResponse)
async def edit_day(
    week_id: int,
    employee_id: int,
    day: str,
    patch: DayPatch,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """
    Edit one day of one employee.

    Days stamped by an approved leave request are locked (423); reject or
    correct the request instead.
    """
    engine = ScheduleEngine(db)
    return engine.edit_day(week_id, employee_id, day, patch, current_employee.role)


@router.patch("/{week_id}/employees/{employee_id}/days", response_model=List[DayEntryResponse])
async def edit_days_bulk(
    week_id: int,
    employee_id: int,
    patch: BulkDayPatch,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """Apply one edit to several days. Locked days are skipped and left out of the response."""
    engine = ScheduleEngine(db)
    return engine.edit_day_bulk(week_id, employee_id, patch.dates, patch, current_employee.role)
