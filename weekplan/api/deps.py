"""
FastAPI dependencies: bearer-token identity and role guards.
"""

from typing import Optional
from datetime import date

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from weekplan.core.database import get_db
from weekplan.core.exceptions import PermissionDeniedError
from weekplan.core.security import decode_access_token
from weekplan.models.employee import Employee, EmployeeStatus
from weekplan.services.base import is_privileged

# Tokens are issued by the identity provider; there is no login route here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def get_today() -> date:
    """Current date for visibility and "today" markers. Overridden in tests."""
    return date.today()


async def get_current_employee(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Employee:
    """Decode the JWT and look up the employee it names."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exc

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exc

    employee_id = payload.get("sub")
    if employee_id is None:
        raise credentials_exc

    try:
        employee = db.query(Employee).filter(Employee.id == int(employee_id)).first()
    except ValueError:
        raise credentials_exc
    if employee is None or employee.status != EmployeeStatus.ACTIVE:
        raise credentials_exc
    return employee


async def require_supervisor_or_admin(
    current_employee: Employee = Depends(get_current_employee),
) -> Employee:
    if not is_privileged(current_employee.role):
        raise PermissionDeniedError(
            "Supervisor or admin access required",
            field="role",
            value=current_employee.role.value,
        )
    return current_employee
