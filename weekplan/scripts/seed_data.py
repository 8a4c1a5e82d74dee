"""
Sample Data Seeder

Generates sample data for trying out the Weekly Schedule Engine:
- A roster with admins, supervisors and technician/helpdesk/NOC staff
- The current week, generated and activated, plus next week as a draft
- A few leave requests, one of them approved onto the schedule

Run with: python -m weekplan.scripts.seed_data
"""

import random
from datetime import date, timedelta
from typing import List

from sqlalchemy.orm import Session

from weekplan.core.database import SessionLocal, engine, Base
from weekplan.core.security import create_access_token
from weekplan.models.employee import Employee, EmployeeRole, EmployeeStatus
from weekplan.models.leave_request import LeaveStatus, LeaveType
from weekplan.models.week_schedule import WeekStatus
from weekplan.services.calendar import monday_of
from weekplan.services.leave_requests import LeaveRequestService
from weekplan.services.schedule_engine import ScheduleEngine


# (role, how many)
ROSTER = [
    (EmployeeRole.ADMIN, 1),
    (EmployeeRole.SUPERVISOR, 2),
    (EmployeeRole.TECHNICIAN, 6),
    (EmployeeRole.HELPDESK, 4),
    (EmployeeRole.NOC, 3),
]

FIRST_NAMES = [
    "James", "Maria", "David", "Jennifer", "Michael", "Lisa", "Robert", "Patricia",
    "William", "Linda", "Richard", "Barbara", "Joseph", "Elizabeth", "Thomas", "Susan",
]

LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis",
    "Rodriguez", "Martinez", "Hernandez", "Lopez", "Gonzalez", "Wilson", "Anderson", "Thomas",
]


def create_employees(db: Session) -> List[Employee]:
    """Create the roster."""
    print("Creating employees...")
    employees = []
    index = 0
    for role, count in ROSTER:
        for _ in range(count):
            employee = Employee(
                first_name=FIRST_NAMES[index % len(FIRST_NAMES)],
                last_name=LAST_NAMES[(index * 7) % len(LAST_NAMES)],
                role=role,
                status=EmployeeStatus.ACTIVE,
            )
            db.add(employee)
            employees.append(employee)
            index += 1
    db.commit()
    print(f"Created {len(employees)} employees")
    return employees


def create_current_week(db: Session, supervisor: Employee, today: date) -> None:
    """Generate this week and activate it, then draft next week from it."""
    print("Generating current week...")
    schedule_engine = ScheduleEngine(db)
    week = schedule_engine.generate_week(monday_of(today), supervisor.id)
    schedule_engine.change_week_status(week.id, WeekStatus.ACTIVE)
    print(f"Activated {week.name}")

    draft = schedule_engine.copy_week(week.id, week.start_date + timedelta(days=7), supervisor.id)
    print(f"Drafted {draft.name}")


def create_leave_requests(db: Session, employees: List[Employee], supervisor: Employee, today: date) -> None:
    """Submit a few requests and approve one."""
    print("Creating leave requests...")
    service = LeaveRequestService(db)
    staff = [e for e in employees if e.role in (EmployeeRole.TECHNICIAN, EmployeeRole.HELPDESK, EmployeeRole.NOC)]
    random.seed(42)

    outcomes = []
    for employee in random.sample(staff, 4):
        start = today + timedelta(days=random.randint(0, 10))
        outcome = service.create(
            employee.id,
            employee.role,
            random.choice(list(LeaveType)),
            start,
            start + timedelta(days=random.randint(0, 2)),
            reason="Sample request",
        )
        outcomes.append(outcome)

    service.decide(outcomes[0].request.id, LeaveStatus.APPROVED, supervisor.id)
    print(f"Created {len(outcomes)} leave requests (1 approved)")


def seed_all(db: Session):
    """Run all seed functions."""
    print("\n" + "="*50)
    print("SEEDING WEEKLY SCHEDULE DATABASE")
    print("="*50 + "\n")

    # Create tables if they don't exist
    Base.metadata.create_all(bind=engine)

    today = date.today()
    employees = create_employees(db)
    supervisor = next(e for e in employees if e.role == EmployeeRole.SUPERVISOR)
    admin = next(e for e in employees if e.role == EmployeeRole.ADMIN)
    technician = next(e for e in employees if e.role == EmployeeRole.TECHNICIAN)

    create_current_week(db, supervisor, today)
    create_leave_requests(db, employees, supervisor, today)

    print("\n" + "="*50)
    print("SEEDING COMPLETE")
    print("="*50)
    print("\nBearer tokens:")
    for employee in (admin, supervisor, technician):
        print(f"  {employee.role.value} ({employee.full_name}): {create_access_token(employee.id, employee.role.value)}")
    print("\n")


def main():
    """Main entry point."""
    db = SessionLocal()
    try:
        seed_all(db)
    except Exception as e:
        print(f"Error seeding database: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
