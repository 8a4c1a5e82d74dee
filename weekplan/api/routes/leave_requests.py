from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from weekplan.api.deps import get_current_employee, require_supervisor_or_admin
from weekplan.core.database import get_db
from weekplan.core.exceptions import PermissionDeniedError
from weekplan.models.employee import Employee
from weekplan.models.leave_request import LeaveStatus
from weekplan.schemas.leave_request import (
    LeaveRequestCreate,
    LeaveRequestUpdate,
    LeaveDecision,
    LeaveRequestResponse,
    LeaveRequestOutcomeResponse,
    ConflictCheckRequest,
    ConflictCheckResponse,
)
from weekplan.services.base import is_privileged
from weekplan.services.conflict_checker import ConflictChecker
from weekplan.services.leave_requests import LeaveRequestService, RequestOutcome

router = APIRouter()


def _outcome_response(outcome: RequestOutcome) -> LeaveRequestOutcomeResponse:
    return LeaveRequestOutcomeResponse(
        request=LeaveRequestResponse.model_validate(outcome.request),
        conflicts=ConflictCheckResponse.model_validate(outcome.conflicts),
    )


@router.get("/", response_model=List[LeaveRequestResponse], dependencies=[Depends(require_supervisor_or_admin)])
async def list_leave_requests(
    employee_id: int = None,
    status: LeaveStatus = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    """List leave requests. Can filter by employee_id and status (supervisor/admin only)."""
    service = LeaveRequestService(db)
    return service.list_requests(employee_id=employee_id, status=status, skip=skip, limit=limit)


@router.get("/mine", response_model=List[LeaveRequestResponse])
async def list_my_leave_requests(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """The current employee's own requests, newest first."""
    service = LeaveRequestService(db)
    return service.list_requests(employee_id=current_employee.id)


@router.get("/pending", response_model=List[LeaveRequestResponse], dependencies=[Depends(require_supervisor_or_admin)])
async def list_pending_leave_requests(db: Session = Depends(get_db)):
    """Requests waiting for a decision, oldest first (supervisor/admin only)."""
    service = LeaveRequestService(db)
    return service.list_pending()


@router.get("/history", response_model=List[LeaveRequestResponse], dependencies=[Depends(require_supervisor_or_admin)])
async def list_leave_request_history(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    """Approved and rejected requests (supervisor/admin only)."""
    service = LeaveRequestService(db)
    return service.list_history(skip=skip, limit=limit)


@router.post("/check-conflicts", response_model=ConflictCheckResponse)
async def check_conflicts(
    data: ConflictCheckRequest,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """Preview overlaps for a date range before submitting. Conflicts never block submission."""
    checker = ConflictChecker(db)
    result = checker.check_conflicts(
        current_employee.id,
        current_employee.role,
        data.date_start,
        data.date_end,
        exclude_request_id=data.exclude_request_id,
    )
    return ConflictCheckResponse.model_validate(result)


@router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """Get a request. Employees see their own; supervisors and admins see all."""
    service = LeaveRequestService(db)
    request = service.get(request_id)
    if request.employee_id != current_employee.id and not is_privileged(current_employee.role):
        raise PermissionDeniedError("Not allowed to view this request", field="request_id", value=request_id)
    return request


@router.post("/", response_model=LeaveRequestOutcomeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    request_data: LeaveRequestCreate,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """Submit a leave request for the current employee. Overlaps are reported, not rejected."""
    service = LeaveRequestService(db)
    outcome = service.create(
        current_employee.id,
        current_employee.role,
        request_data.type,
        request_data.date_start,
        request_data.date_end,
        reason=request_data.reason,
    )
    return _outcome_response(outcome)


@router.patch("/{request_id}", response_model=LeaveRequestOutcomeResponse)
async def update_leave_request(
    request_id: int,
    request_data: LeaveRequestUpdate,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """Edit your own pending request."""
    service = LeaveRequestService(db)
    outcome = service.edit(request_id, request_data.model_dump(exclude_unset=True), current_employee.id)
    return _outcome_response(outcome)


@router.post("/{request_id}/decision", response_model=LeaveRequestResponse)
async def decide_leave_request(
    request_id: int,
    decision: LeaveDecision,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require_supervisor_or_admin)
):
    """Approve or reject a pending request (supervisor/admin only). Approval updates the schedule."""
    service = LeaveRequestService(db)
    return service.decide(request_id, decision.status, current_employee.id)


@router.post("/{request_id}/correction", response_model=LeaveRequestResponse)
async def correct_leave_request(
    request_id: int,
    decision: LeaveDecision,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require_supervisor_or_admin)
):
    """
    Flip an approved request to rejected or vice versa, once.

    Only admins may correct supervisor or admin requests, and nobody may
    correct their own.
    """
    service = LeaveRequestService(db)
    return service.correct_status(request_id, decision.status, current_employee.id, current_employee.role)
