from contextlib import contextmanager
from typing import Iterator, Union

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from weekplan.config import get_settings
from weekplan.core.exceptions import PermissionDeniedError, UnavailableError
from weekplan.models.employee import EmployeeRole

settings = get_settings()


def parse_role(role: Union[EmployeeRole, str]) -> EmployeeRole:
    try:
        return EmployeeRole(role)
    except ValueError:
        raise PermissionDeniedError(f"Unknown role '{role}'", field="role", value=role)


def is_privileged(role: Union[EmployeeRole, str]) -> bool:
    """Supervisors and admins may edit schedules and decide requests."""
    return parse_role(role).value in settings.privileged_roles


class BaseService:
    """Common constructor and transaction boundary for the engine services."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Commit everything written inside the block once, or nothing.

        Connection loss and pool timeouts surface as ``UnavailableError`` so
        the caller can retry; any other failure is re-raised after rollback.
        """
        try:
            yield
            self.db.commit()
        except (OperationalError, PoolTimeoutError) as exc:
            self.db.rollback()
            raise UnavailableError("Storage temporarily unavailable") from exc
        except Exception:
            self.db.rollback()
            raise
