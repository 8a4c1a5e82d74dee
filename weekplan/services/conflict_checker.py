"""
Leave Conflict Checker

Finds pending or approved leave requests overlapping a candidate date range.
Results are advisory: callers attach them to the saved request, they never
block submission.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union
from datetime import date
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from weekplan.core.exceptions import InvalidRangeError
from weekplan.models.employee import EmployeeRole
from weekplan.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from weekplan.services.base import BaseService, parse_role
from weekplan.services.calendar import DateLike, parse_iso, format_iso

logger = logging.getLogger(__name__)

CONFLICT_NOTE_MARKER = "[conflict check]"


class ConflictScope(str, enum.Enum):
    SELF = "self"   # the same employee already asked for these days
    PEER = "peer"   # someone with the same role is off on these days


@dataclass
class Conflict:
    conflicting_request_id: int
    employee_id: int
    employee_name: Optional[str]
    date_start: date
    date_end: date
    scope: ConflictScope
    request_type: LeaveType
    status: LeaveStatus

    def describe(self) -> str:
        return (
            f"conflicts with request #{self.conflicting_request_id}, "
            f"dates {format_iso(self.date_start)} to {format_iso(self.date_end)}"
        )

    def to_dict(self) -> dict:
        return {
            "conflicting_request_id": self.conflicting_request_id,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "date_start": self.date_start.isoformat(),
            "date_end": self.date_end.isoformat(),
            "scope": self.scope.value,
            "request_type": self.request_type.value,
            "status": self.status.value,
        }


@dataclass
class ConflictResult:
    self_conflicts: List[Conflict] = field(default_factory=list)
    peer_conflicts: List[Conflict] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.self_conflicts or self.peer_conflicts)

    @property
    def conflicts(self) -> List[Conflict]:
        return self.self_conflicts + self.peer_conflicts

    def to_dict(self) -> dict:
        return {
            "has_conflicts": self.has_conflicts,
            "self_conflicts": [c.to_dict() for c in self.self_conflicts],
            "peer_conflicts": [c.to_dict() for c in self.peer_conflicts],
        }


def conflict_note(result: ConflictResult) -> str:
    """Human-readable note listing every conflict, empty when there are none."""
    if not result.has_conflicts:
        return ""
    return f"{CONFLICT_NOTE_MARKER} " + "; ".join(c.describe() for c in result.conflicts)


def merge_conflict_note(reason: Optional[str], result: ConflictResult) -> Optional[str]:
    """Replace any earlier conflict note in ``reason`` with the current one."""
    base = (reason or "").split(CONFLICT_NOTE_MARKER)[0].strip()
    note = conflict_note(result)
    merged = "\n".join(part for part in (base, note) if part)
    return merged or None


class ConflictChecker(BaseService):
    """Advisory overlap detection between leave requests."""

    def check_conflicts(
        self,
        employee_id: int,
        role: Union[EmployeeRole, str],
        date_start: DateLike,
        date_end: DateLike,
        exclude_request_id: Optional[int] = None
    ) -> ConflictResult:
        """
        Split overlapping pending/approved requests into the employee's own
        ("self") and those of other employees with the same role ("peer").

        Two ranges overlap when neither ends before the other starts.
        ``exclude_request_id`` leaves out the request being edited.
        """
        start = parse_iso(date_start, "date_start")
        end = parse_iso(date_end, "date_end")
        if start > end:
            raise InvalidRangeError(
                f"Start date {format_iso(start)} is after end date {format_iso(end)}",
                field="date_start",
                value=start,
            )
        role = parse_role(role)

        query = self.db.query(LeaveRequest).options(
            joinedload(LeaveRequest.employee)
        ).filter(
            LeaveRequest.status.in_([LeaveStatus.PENDING, LeaveStatus.APPROVED]),
            LeaveRequest.date_start <= end,
            LeaveRequest.date_end >= start,
            or_(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.employee_role == role
            )
        )
        if exclude_request_id is not None:
            query = query.filter(LeaveRequest.id != exclude_request_id)

        result = ConflictResult()
        for request in query.order_by(LeaveRequest.date_start, LeaveRequest.id).all():
            is_own = request.employee_id == employee_id
            conflict = Conflict(
                conflicting_request_id=request.id,
                employee_id=request.employee_id,
                employee_name=request.employee_name,
                date_start=request.date_start,
                date_end=request.date_end,
                scope=ConflictScope.SELF if is_own else ConflictScope.PEER,
                request_type=request.type,
                status=request.status,
            )
            if is_own:
                result.self_conflicts.append(conflict)
            else:
                result.peer_conflicts.append(conflict)

        if result.has_conflicts:
            logger.info(
                "Employee %s %s-%s: %d own and %d peer conflict(s)",
                employee_id, start, end, len(result.self_conflicts), len(result.peer_conflicts)
            )
        return result
