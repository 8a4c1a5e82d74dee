from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from weekplan.api.deps import get_current_employee
from weekplan.core.database import get_db
from weekplan.models.employee import Employee, EmployeeRole, EmployeeStatus
from weekplan.schemas.employee import EmployeeResponse

router = APIRouter()


@router.get("/", response_model=List[EmployeeResponse])
async def list_employees(
    role: EmployeeRole = None,
    status: EmployeeStatus = EmployeeStatus.ACTIVE,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """List the roster. Can filter by role; active employees by default."""
    query = db.query(Employee)
    if role:
        query = query.filter(Employee.role == role)
    if status:
        query = query.filter(Employee.status == status)
    employees = query.order_by(Employee.last_name, Employee.first_name).offset(skip).limit(limit).all()
    return employees


@router.get("/me", response_model=EmployeeResponse)
async def get_me(current_employee: Employee = Depends(get_current_employee)):
    """The employee the bearer token belongs to."""
    return current_employee


@router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """Get a specific employee by ID."""
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee
