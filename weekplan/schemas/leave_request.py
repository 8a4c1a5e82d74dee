from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime

from weekplan.models.employee import EmployeeRole
from weekplan.models.leave_request import LeaveType, LeaveStatus
from weekplan.services.conflict_checker import ConflictScope


class LeaveRequestBase(BaseModel):
    type: LeaveType
    date_start: date
    date_end: date
    reason: Optional[str] = None


class LeaveRequestCreate(LeaveRequestBase):
    pass


class LeaveRequestUpdate(BaseModel):
    type: Optional[LeaveType] = None
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    reason: Optional[str] = None

    class Config:
        extra = "forbid"


class LeaveDecision(BaseModel):
    status: LeaveStatus


class ConflictCheckRequest(BaseModel):
    date_start: date
    date_end: date
    exclude_request_id: Optional[int] = None


class ConflictResponse(BaseModel):
    conflicting_request_id: int
    employee_id: int
    employee_name: Optional[str] = None
    date_start: date
    date_end: date
    scope: ConflictScope
    request_type: LeaveType
    status: LeaveStatus

    class Config:
        from_attributes = True


class ConflictCheckResponse(BaseModel):
    has_conflicts: bool
    self_conflicts: List[ConflictResponse] = []
    peer_conflicts: List[ConflictResponse] = []

    class Config:
        from_attributes = True


class LeaveRequestResponse(LeaveRequestBase):
    id: int
    employee_id: int
    employee_name: Optional[str] = None
    employee_role: EmployeeRole
    days: int
    status: LeaveStatus
    approved_by: Optional[int] = None
    approver_name: Optional[str] = None
    approved_at: Optional[datetime] = None
    corrected_by: Optional[int] = None
    corrected_at: Optional[datetime] = None
    correction_note: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LeaveRequestOutcomeResponse(BaseModel):
    """A saved request together with the advisory conflict check run for it."""
    request: LeaveRequestResponse
    conflicts: ConflictCheckResponse
