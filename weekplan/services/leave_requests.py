"""
Leave Request Lifecycle

Submission, editing, decision and one-time correction of leave requests.
Approval stamps the covered days onto the schedule as locked,
request-derived entries; a correction from approved to rejected rolls them
back.

Decisions, corrections and edits use a conditional UPDATE guarded by the
expected current status, so two supervisors deciding the same request at
once cannot both win, and an owner cannot move a request that was decided
after they loaded it.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Union
from datetime import date, datetime, timezone
from sqlalchemy import update
from sqlalchemy.orm import Session

from weekplan.core.exceptions import (
    ConflictError,
    InvalidRangeError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from weekplan.models.employee import EmployeeRole
from weekplan.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from weekplan.services.base import BaseService, parse_role
from weekplan.services.calendar import DateLike, parse_iso, date_range, format_iso
from weekplan.services.conflict_checker import ConflictChecker, ConflictResult, merge_conflict_note
from weekplan.services.day_store import DayStore, template_slot, request_slot

logger = logging.getLogger(__name__)

_PEER_LEVEL = {EmployeeRole.TECHNICIAN, EmployeeRole.HELPDESK, EmployeeRole.NOC}

# Who may correct a resolved request, by the requester's role
CORRECTION_AUTHORITY = {
    **{role: {EmployeeRole.SUPERVISOR, EmployeeRole.ADMIN} for role in _PEER_LEVEL},
    EmployeeRole.SUPERVISOR: {EmployeeRole.ADMIN},
    EmployeeRole.ADMIN: {EmployeeRole.ADMIN},
}


@dataclass
class RequestOutcome:
    """A saved request and the advisory conflicts found when it was saved."""
    request: LeaveRequest
    conflicts: ConflictResult


class LeaveRequestService(BaseService):

    def __init__(self, db: Session):
        super().__init__(db)
        self.store = DayStore(db)
        self.checker = ConflictChecker(db)

    # ── Queries ─────────────────────────────────────────────────────
    def get(self, request_id: int) -> LeaveRequest:
        request = self.db.query(LeaveRequest).filter(LeaveRequest.id == request_id).first()
        if not request:
            raise NotFoundError(f"Leave request {request_id} not found", field="request_id", value=request_id)
        return request

    def list_requests(
        self,
        employee_id: Optional[int] = None,
        status: Optional[LeaveStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[LeaveRequest]:
        query = self.db.query(LeaveRequest)
        if employee_id:
            query = query.filter(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.filter(LeaveRequest.status == status)
        return query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc()).offset(skip).limit(limit).all()

    def list_pending(self) -> List[LeaveRequest]:
        """Pending requests, oldest first."""
        return self.db.query(LeaveRequest).filter(
            LeaveRequest.status == LeaveStatus.PENDING
        ).order_by(LeaveRequest.created_at, LeaveRequest.id).all()

    def list_history(self, skip: int = 0, limit: int = 100) -> List[LeaveRequest]:
        """Approved and rejected requests, most recently decided first."""
        return self.db.query(LeaveRequest).filter(
            LeaveRequest.status != LeaveStatus.PENDING
        ).order_by(LeaveRequest.approved_at.desc(), LeaveRequest.id.desc()).offset(skip).limit(limit).all()

    # ── Submission ──────────────────────────────────────────────────
    def create(
        self,
        employee_id: int,
        role: Union[EmployeeRole, str],
        type: Union[LeaveType, str],
        date_start: DateLike,
        date_end: DateLike,
        reason: Optional[str] = None
    ) -> RequestOutcome:
        """
        Submit a pending request.

        Overlaps with the employee's own or same-role requests are returned
        and noted in ``reason`` but never block the submission.
        """
        start, end = self._range(date_start, date_end)
        role = parse_role(role)
        conflicts = self.checker.check_conflicts(employee_id, role, start, end)

        with self.transaction():
            request = LeaveRequest(
                employee_id=employee_id,
                employee_role=role,
                type=LeaveType(type),
                date_start=start,
                date_end=end,
                reason=merge_conflict_note(reason, conflicts),
                status=LeaveStatus.PENDING,
            )
            self.db.add(request)

        self.db.refresh(request)
        logger.info(
            "Leave request %s submitted by employee %s: %s %s to %s (%d conflict(s))",
            request.id, employee_id, request.type.value, start, end, len(conflicts.conflicts)
        )
        return RequestOutcome(request=request, conflicts=conflicts)

    def edit(self, request_id: int, changes: dict, editor_id: int) -> RequestOutcome:
        """Change a pending request's own fields; conflicts are re-checked."""
        request = self.get(request_id)
        if request.employee_id != editor_id:
            raise PermissionDeniedError(
                "Only the requester can edit a leave request",
                field="employee_id",
                value=editor_id,
            )
        if request.status != LeaveStatus.PENDING:
            raise InvalidStateError(
                f"Request #{request_id} is already {request.status.value}",
                field="status",
                value=request.status.value,
            )

        start, end = self._range(
            changes.get("date_start") or request.date_start,
            changes.get("date_end") or request.date_end
        )
        conflicts = self.checker.check_conflicts(
            request.employee_id, request.employee_role, start, end, exclude_request_id=request.id
        )

        reason = changes["reason"] if "reason" in changes else request.reason
        with self.transaction():
            # A decision made elsewhere since the read above wins over this edit
            self._transition(
                request, LeaveStatus.PENDING,
                type=LeaveType(changes["type"]) if changes.get("type") is not None else request.type,
                date_start=start,
                date_end=end,
                reason=merge_conflict_note(reason, conflicts),
            )

        self.db.refresh(request)
        logger.info("Leave request %s edited: %s to %s", request.id, start, end)
        return RequestOutcome(request=request, conflicts=conflicts)

    # ── Decision ────────────────────────────────────────────────────
    def decide(
        self,
        request_id: int,
        new_status: Union[LeaveStatus, str],
        decided_by: int,
        now: Optional[datetime] = None
    ) -> LeaveRequest:
        """
        Approve or reject a pending request.

        Approval stamps every covered day onto the schedule in the same
        transaction as the status change.
        """
        new_status = LeaveStatus(new_status)
        if new_status == LeaveStatus.PENDING:
            raise InvalidStateError("A decision must approve or reject", field="status", value=new_status.value)
        now = now or datetime.now(timezone.utc)

        with self.transaction():
            request = self.get(request_id)
            if request.status != LeaveStatus.PENDING:
                raise InvalidStateError(
                    f"Request #{request_id} is already {request.status.value}",
                    field="status",
                    value=request.status.value,
                )
            self._transition(
                request, LeaveStatus.PENDING,
                status=new_status, approved_by=decided_by, approved_at=now
            )
            if new_status == LeaveStatus.APPROVED:
                stamped = self._stamp(request)
            else:
                stamped = 0

        self.db.refresh(request)
        logger.info(
            "Leave request %s %s by employee %s (%d day(s) stamped)",
            request_id, new_status.value, decided_by, stamped
        )
        return request

    def correct_status(
        self,
        request_id: int,
        new_status: Union[LeaveStatus, str],
        corrector_id: int,
        corrector_role: Union[EmployeeRole, str],
        now: Optional[datetime] = None
    ) -> LeaveRequest:
        """
        Flip a resolved request between approved and rejected, once.

        Supervisors or admins correct requests from technicians, helpdesk
        and NOC staff; only admins correct supervisor and admin requests.
        Nobody corrects their own request. Rejecting a previously approved
        request resets the days it stamped.
        """
        new_status = LeaveStatus(new_status)
        corrector_role = parse_role(corrector_role)
        now = now or datetime.now(timezone.utc)

        with self.transaction():
            request = self.get(request_id)
            previous = request.status
            if previous == LeaveStatus.PENDING:
                raise InvalidStateError(
                    f"Request #{request_id} is still pending; decide it instead",
                    field="status",
                    value=previous.value,
                )
            if new_status == LeaveStatus.PENDING or new_status == previous:
                raise InvalidStateError(
                    f"Cannot correct request #{request_id} from {previous.value} to {new_status.value}",
                    field="status",
                    value=new_status.value,
                )
            if request.corrected_at is not None:
                raise InvalidStateError(
                    f"Request #{request_id} was already corrected on {format_iso(request.corrected_at)}",
                    field="corrected_at",
                    value=request.corrected_at,
                )
            if request.employee_id == corrector_id:
                raise PermissionDeniedError(
                    "Employees cannot correct their own requests",
                    field="employee_id",
                    value=corrector_id,
                )
            if corrector_role not in CORRECTION_AUTHORITY[request.employee_role]:
                raise PermissionDeniedError(
                    f"A {corrector_role.value} cannot correct a {request.employee_role.value}'s request",
                    field="role",
                    value=corrector_role.value,
                )

            note = (
                f"Corrected from {previous.value} to {new_status.value} by employee "
                f"{corrector_id} ({corrector_role.value}) on {format_iso(now)}"
            )
            self._transition(
                request, previous,
                status=new_status, corrected_by=corrector_id, corrected_at=now, correction_note=note
            )
            if new_status == LeaveStatus.APPROVED:
                touched = self._stamp(request)
            else:
                touched = self._roll_back(request)

        self.db.refresh(request)
        logger.info("Leave request %s: %s (%d day(s) updated)", request_id, note, touched)
        return request

    # ── Internals ───────────────────────────────────────────────────
    def _range(self, date_start: DateLike, date_end: DateLike):
        start = parse_iso(date_start, "date_start")
        end = parse_iso(date_end, "date_end")
        if start > end:
            raise InvalidRangeError(
                f"Start date {format_iso(start)} is after end date {format_iso(end)}",
                field="date_start",
                value=start,
            )
        return start, end

    def _transition(self, request: LeaveRequest, expected: LeaveStatus, **values) -> None:
        """UPDATE the request only if it still has the expected status."""
        result = self.db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.id == request.id, LeaveRequest.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                f"Request #{request.id} was changed by someone else; reload and try again",
                field="status",
                value=expected.value,
            )
        self.db.refresh(request)

    def _stamp(self, request: LeaveRequest) -> int:
        slot = request_slot(request.id, request.stamped_day_type)
        entries = self.store.bulk_put(
            (request.employee_id, day, slot) for day in date_range(request.date_start, request.date_end)
        )
        return len(entries)

    def _roll_back(self, request: LeaveRequest) -> int:
        """
        Undo the days a request stamped.

        Each day goes back to the manual day the stamp replaced. Without
        one, days inside a week get the default template and days outside
        any week are removed. Other approved requests of the same employee
        that still cover a day are stamped again afterwards.
        """
        entries = self.store.entries_from_request(request.id)
        days = [entry.date for entry in entries]
        resets = []
        for entry in entries:
            prior = self.store.prior_slot(entry)
            if prior is not None:
                resets.append((entry.employee_id, entry.date, prior))
            elif entry.week_id is None:
                self.store.delete(entry.employee_id, entry.date)
            else:
                resets.append((entry.employee_id, entry.date, template_slot()))
        # week_id is kept by the upsert for existing rows
        self.store.bulk_put(resets)
        self._restamp_covering(request, days)
        return len(entries)

    def _restamp_covering(self, request: LeaveRequest, days: List[date]) -> int:
        """Stamp ``days`` again from the employee's other approved requests, latest approval last."""
        if not days:
            return 0
        others = self.db.query(LeaveRequest).filter(
            LeaveRequest.employee_id == request.employee_id,
            LeaveRequest.id != request.id,
            LeaveRequest.status == LeaveStatus.APPROVED,
            LeaveRequest.date_start <= max(days),
            LeaveRequest.date_end >= min(days)
        ).order_by(LeaveRequest.approved_at, LeaveRequest.id).all()

        items = [
            (other.employee_id, day, request_slot(other.id, other.stamped_day_type))
            for other in others
            for day in days
            if other.date_start <= day <= other.date_end
        ]
        self.store.bulk_put(items)
        if items:
            logger.info(
                "Re-stamped %d day(s) of employee %s from request(s) %s",
                len(items), request.employee_id, ", ".join(str(o.id) for o in others)
            )
        return len(items)
