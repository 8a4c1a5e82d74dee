from pydantic import BaseModel

from weekplan.models.employee import EmployeeRole, EmployeeStatus


class EmployeeResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    full_name: str
    role: EmployeeRole
    status: EmployeeStatus

    class Config:
        from_attributes = True
