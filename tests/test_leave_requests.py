"""Tests for the leave request lifecycle: submit, edit, decide, correct."""

from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tests.conftest import MONDAY, make_employee
from weekplan.core.database import Base
from weekplan.core.exceptions import ConflictError, InvalidRangeError, InvalidStateError, LockedError, PermissionDeniedError
from weekplan.models.day_entry import DayEntry, DayType, ShiftPeriod, Provenance
from weekplan.models.employee import EmployeeRole
from weekplan.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from weekplan.schemas.day_entry import DayPatch
from weekplan.services.day_store import DayStore
from weekplan.services.leave_requests import LeaveRequestService
from weekplan.services.schedule_engine import ScheduleEngine


@pytest.fixture
def service(db_session):
    return LeaveRequestService(db_session)


def _submit(service, employee, start=date(2025, 3, 11), end=date(2025, 3, 12), type=LeaveType.VACATION, reason=None):
    return service.create(employee.id, employee.role, type, start, end, reason=reason).request


# ── Submission and editing ──────────────────────────────────────────
def test_create_pending_request(service, roster):
    """New requests are pending and snapshot the requester's role."""
    tom = roster["technician"]
    outcome = service.create(tom.id, tom.role, LeaveType.PERMISSION, "2025-03-11", "2025-03-13", reason="Exam")
    request = outcome.request
    assert request.status == LeaveStatus.PENDING
    assert request.employee_role == EmployeeRole.TECHNICIAN
    assert request.days == 3
    assert request.reason == "Exam"
    assert outcome.conflicts.has_conflicts is False


def test_create_with_conflicts_still_submits(service, roster):
    """Overlaps are reported and noted, never blocking."""
    tom, tia = roster["technician"], roster["technician2"]
    first = _submit(service, tia)
    outcome = service.create(tom.id, tom.role, LeaveType.VACATION, "2025-03-12", "2025-03-14", reason="Trip")
    assert outcome.request.id is not None
    assert outcome.request.status == LeaveStatus.PENDING
    assert [c.conflicting_request_id for c in outcome.conflicts.peer_conflicts] == [first.id]
    assert outcome.request.reason.startswith("Trip\n")
    assert f"request #{first.id}" in outcome.request.reason


def test_create_rejects_reversed_dates(service, roster):
    """End before start is an invalid range."""
    tom = roster["technician"]
    with pytest.raises(InvalidRangeError):
        service.create(tom.id, tom.role, LeaveType.REST, "2025-03-12", "2025-03-11")


def test_edit_pending_request(service, roster):
    """Owners can move their pending request; conflicts exclude the request itself."""
    tom = roster["technician"]
    request = _submit(service, tom)
    outcome = service.edit(request.id, {"date_end": date(2025, 3, 14), "type": LeaveType.REST}, tom.id)
    assert outcome.request.date_end == date(2025, 3, 14)
    assert outcome.request.type == LeaveType.REST
    assert not outcome.conflicts.has_conflicts


def test_edit_requires_owner_and_pending(service, roster):
    """Other employees and decided requests cannot be edited."""
    tom, tia, sup = roster["technician"], roster["technician2"], roster["supervisor"]
    request = _submit(service, tom)
    with pytest.raises(PermissionDeniedError):
        service.edit(request.id, {"reason": "mine now"}, tia.id)
    service.decide(request.id, LeaveStatus.REJECTED, sup.id)
    with pytest.raises(InvalidStateError):
        service.edit(request.id, {"reason": "too late"}, tom.id)


# ── Decisions ───────────────────────────────────────────────────────
def test_approve_stamps_days_into_existing_week(db_session, service, roster):
    """Every covered day becomes a locked request-derived entry."""
    tom, sup = roster["technician"], roster["supervisor"]
    week = ScheduleEngine(db_session).generate_week(MONDAY, sup.id)
    request = _submit(service, tom, type=LeaveType.LICENSE)

    decided = service.decide(request.id, LeaveStatus.APPROVED, sup.id)

    assert decided.status == LeaveStatus.APPROVED
    assert decided.approved_by == sup.id
    assert decided.approved_at is not None
    store = DayStore(db_session)
    for day in (date(2025, 3, 11), date(2025, 3, 12)):
        entry = store.get(tom.id, day)
        assert entry.week_id == week.id
        assert entry.day_type == DayType.PERMISSION
        assert entry.provenance == Provenance.FROM_APPROVED_REQUEST
        assert entry.source_request_id == request.id
        assert entry.shift_start is None
    assert store.get(tom.id, date(2025, 3, 13)).provenance == Provenance.MANUAL


def test_reject_leaves_schedule_alone(db_session, service, roster):
    """Rejection writes no entries."""
    tom, sup = roster["technician"], roster["supervisor"]
    request = _submit(service, tom)
    service.decide(request.id, LeaveStatus.REJECTED, sup.id)
    assert db_session.query(DayEntry).count() == 0


def test_decide_twice_is_invalid(service, roster):
    """Only pending requests can be decided."""
    tom, sup = roster["technician"], roster["supervisor"]
    request = _submit(service, tom)
    service.decide(request.id, LeaveStatus.APPROVED, sup.id)
    with pytest.raises(InvalidStateError):
        service.decide(request.id, LeaveStatus.REJECTED, sup.id)


def test_decide_pending_is_not_a_decision(service, roster):
    """Deciding to "pending" is rejected."""
    request = _submit(service, roster["technician"])
    with pytest.raises(InvalidStateError):
        service.decide(request.id, LeaveStatus.PENDING, roster["supervisor"].id)


def test_concurrent_decisions_only_one_wins(tmp_path):
    """A decision based on a stale read loses with a conflict."""
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    first, second = Session(), Session()
    try:
        tom = make_employee(first, "Tom", EmployeeRole.TECHNICIAN)
        sup = make_employee(first, "Sam", EmployeeRole.SUPERVISOR)
        request = _submit(LeaveRequestService(first), tom)

        # Second supervisor loads the request while it is still pending
        stale = LeaveRequestService(second).get(request.id)
        assert stale.status == LeaveStatus.PENDING

        LeaveRequestService(first).decide(request.id, LeaveStatus.APPROVED, sup.id)
        with pytest.raises(ConflictError):
            LeaveRequestService(second).decide(request.id, LeaveStatus.REJECTED, sup.id)

        second.expire_all()
        assert LeaveRequestService(second).get(request.id).status == LeaveStatus.APPROVED
    finally:
        first.close()
        second.close()
        engine.dispose()


# ── Corrections ─────────────────────────────────────────────────────
def test_correct_approved_to_rejected_rolls_back_days(db_session, service, roster):
    """Days inside a week return to the default; days outside any week are removed."""
    tom, sup = roster["technician"], roster["supervisor"]
    week = ScheduleEngine(db_session).generate_week(MONDAY, sup.id)
    request = _submit(service, tom, start=date(2025, 3, 15), end=date(2025, 3, 18))
    service.decide(request.id, LeaveStatus.APPROVED, sup.id)

    store = DayStore(db_session)
    assert store.get(tom.id, date(2025, 3, 17)).week_id is None

    corrected = service.correct_status(request.id, LeaveStatus.REJECTED, roster["supervisor2"].id, "supervisor")

    assert corrected.status == LeaveStatus.REJECTED
    assert corrected.corrected_by == roster["supervisor2"].id
    assert "approved to rejected" in corrected.correction_note
    db_session.expire_all()
    for day in (date(2025, 3, 15), date(2025, 3, 16)):
        entry = store.get(tom.id, day)
        assert entry.week_id == week.id
        assert entry.day_type == DayType.NORMAL
        assert entry.provenance == Provenance.MANUAL
        assert entry.source_request_id is None
        assert (entry.shift_start, entry.shift_end) == (time(8), time(17))
    assert store.get(tom.id, date(2025, 3, 17)) is None
    assert store.get(tom.id, date(2025, 3, 18)) is None


def test_correct_rejected_to_approved_stamps_days(db_session, service, roster):
    """A correction to approved behaves like an approval."""
    tom, sup = roster["technician"], roster["supervisor"]
    request = _submit(service, tom, type=LeaveType.COMPENSATION)
    service.decide(request.id, LeaveStatus.REJECTED, sup.id)
    service.correct_status(request.id, LeaveStatus.APPROVED, roster["admin"].id, EmployeeRole.ADMIN)
    entries = DayStore(db_session).entries_from_request(request.id)
    assert [e.day_type for e in entries] == [DayType.COMPENSATED, DayType.COMPENSATED]


def test_correction_happens_once(service, roster):
    """A second correction is refused."""
    tom, sup = roster["technician"], roster["supervisor"]
    request = _submit(service, tom)
    service.decide(request.id, LeaveStatus.APPROVED, sup.id)
    service.correct_status(request.id, LeaveStatus.REJECTED, sup.id, sup.role)
    with pytest.raises(InvalidStateError):
        service.correct_status(request.id, LeaveStatus.APPROVED, sup.id, sup.role)


def test_correction_of_pending_or_same_status_is_invalid(service, roster):
    """Pending requests are decided, not corrected; a no-op flip is refused."""
    tom, sup = roster["technician"], roster["supervisor"]
    request = _submit(service, tom)
    with pytest.raises(InvalidStateError):
        service.correct_status(request.id, LeaveStatus.APPROVED, sup.id, sup.role)
    service.decide(request.id, LeaveStatus.APPROVED, sup.id)
    with pytest.raises(InvalidStateError):
        service.correct_status(request.id, LeaveStatus.APPROVED, sup.id, sup.role)


@pytest.mark.parametrize("requester, corrector, allowed", [
    ("technician", "supervisor", True),
    ("helpdesk", "admin", True),
    ("noc", "supervisor", True),
    ("supervisor", "supervisor2", False),
    ("supervisor", "admin", True),
])
def test_correction_authority(service, roster, requester, corrector, allowed):
    """Supervisors correct staff; only admins correct supervisors."""
    request = _submit(service, roster[requester])
    service.decide(request.id, LeaveStatus.REJECTED, roster["admin"].id)
    if allowed:
        corrected = service.correct_status(request.id, LeaveStatus.APPROVED, roster[corrector].id, roster[corrector].role)
        assert corrected.status == LeaveStatus.APPROVED
    else:
        with pytest.raises(PermissionDeniedError):
            service.correct_status(request.id, LeaveStatus.APPROVED, roster[corrector].id, roster[corrector].role)


def test_nobody_corrects_their_own_request(db_session, service, roster):
    """Even an admin cannot correct their own request."""
    admin = roster["admin"]
    other_admin = make_employee(db_session, "Abe", EmployeeRole.ADMIN)
    request = _submit(service, admin)
    service.decide(request.id, LeaveStatus.REJECTED, other_admin.id)
    with pytest.raises(PermissionDeniedError):
        service.correct_status(request.id, LeaveStatus.APPROVED, admin.id, admin.role)


# ── Listings ────────────────────────────────────────────────────────
def test_pending_and_history_listings(service, roster):
    """Pending lists undecided requests; history lists decided ones."""
    tom, tia, sup = roster["technician"], roster["technician2"], roster["supervisor"]
    waiting = _submit(service, tom)
    decided = _submit(service, tia, start=date(2025, 4, 1), end=date(2025, 4, 2))
    service.decide(decided.id, LeaveStatus.APPROVED, sup.id)

    assert [r.id for r in service.list_pending()] == [waiting.id]
    assert [r.id for r in service.list_history()] == [decided.id]
    assert [r.id for r in service.list_requests(employee_id=tom.id)] == [waiting.id]
    assert [r.id for r in service.list_requests(status=LeaveStatus.APPROVED)] == [decided.id]
    assert service.list_history()[0].approver_name == "Sam Test"


def test_request_rows_survive_decisions(db_session, service, roster):
    """Decisions update the row in place."""
    request = _submit(service, roster["technician"])
    service.decide(request.id, LeaveStatus.APPROVED, roster["supervisor"].id)
    assert db_session.query(LeaveRequest).count() == 1


def test_approval_into_draft_week_then_edit_is_locked(db_session, service, roster):
    """Approving 1-3 April stamps three vacation days; editing one of them is locked."""
    tom, sup = roster["technician"], roster["supervisor"]
    engine = ScheduleEngine(db_session)
    week = engine.generate_week(date(2025, 3, 31), sup.id)
    request = _submit(service, tom, start=date(2025, 4, 1), end=date(2025, 4, 3))

    service.decide(request.id, LeaveStatus.APPROVED, sup.id)

    stamped = DayStore(db_session).entries_from_request(request.id)
    assert [e.date for e in stamped] == [date(2025, 4, 1), date(2025, 4, 2), date(2025, 4, 3)]
    assert all(e.day_type == DayType.VACATION for e in stamped)
    assert all(e.provenance == Provenance.FROM_APPROVED_REQUEST for e in stamped)
    with pytest.raises(LockedError):
        engine.edit_day(week.id, tom.id, date(2025, 4, 2), DayPatch(day_type=DayType.NORMAL), sup.role)


def test_second_approval_leaves_days_unchanged(db_session, service, roster):
    """A repeated approval fails and the stamped days stay as the first one left them."""
    tom, sup = roster["technician"], roster["supervisor"]
    request = _submit(service, tom)
    service.decide(request.id, LeaveStatus.APPROVED, sup.id)
    before = [(e.date, e.day_type, e.source_request_id) for e in DayStore(db_session).entries_from_request(request.id)]

    with pytest.raises(InvalidStateError):
        service.decide(request.id, LeaveStatus.APPROVED, sup.id)

    db_session.expire_all()
    after = [(e.date, e.day_type, e.source_request_id) for e in DayStore(db_session).entries_from_request(request.id)]
    assert after == before
    assert len(after) == 2


def test_correction_restores_manual_days_under_the_stamp(db_session, service, roster):
    """A rest day and an afternoon shift come back as they were before approval."""
    tom, sup = roster["technician"], roster["supervisor"]
    engine = ScheduleEngine(db_session)
    week = engine.generate_week(MONDAY, sup.id)
    engine.edit_day(week.id, tom.id, date(2025, 3, 11), DayPatch(day_type=DayType.REST), sup.role)
    engine.edit_day(week.id, tom.id, date(2025, 3, 12), DayPatch(shift_period=ShiftPeriod.AFTERNOON), sup.role)
    request = _submit(service, tom, start=date(2025, 3, 11), end=date(2025, 3, 13))
    service.decide(request.id, LeaveStatus.APPROVED, sup.id)

    service.correct_status(request.id, LeaveStatus.REJECTED, roster["supervisor2"].id, "supervisor")

    db_session.expire_all()
    store = DayStore(db_session)
    rest = store.get(tom.id, date(2025, 3, 11))
    assert rest.day_type == DayType.REST
    assert rest.provenance == Provenance.MANUAL
    assert rest.shift_start is None and rest.prior_slot is None
    afternoon = store.get(tom.id, date(2025, 3, 12))
    assert afternoon.shift_period == ShiftPeriod.AFTERNOON
    assert (afternoon.shift_start, afternoon.shift_end) == (time(14), time(22))
    assert afternoon.lunch_start is None
    default = store.get(tom.id, date(2025, 3, 13))
    assert (default.shift_start, default.shift_end) == (time(8), time(17))
    assert all(e.week_id == week.id for e in (rest, afternoon, default))


def test_correction_keeps_days_still_covered_by_another_approval(db_session, service, roster):
    """Rejecting a later request hands its days back to the earlier approved one."""
    tom, sup = roster["technician"], roster["supervisor"]
    first = _submit(service, tom, start=date(2025, 3, 11), end=date(2025, 3, 13))
    service.decide(first.id, LeaveStatus.APPROVED, sup.id)
    second = _submit(service, tom, start=date(2025, 3, 12), end=date(2025, 3, 12), type=LeaveType.PERMISSION)
    service.decide(second.id, LeaveStatus.APPROVED, sup.id)

    store = DayStore(db_session)
    assert store.get(tom.id, date(2025, 3, 12)).source_request_id == second.id

    service.correct_status(second.id, LeaveStatus.REJECTED, roster["supervisor2"].id, "supervisor")

    db_session.expire_all()
    entry = store.get(tom.id, date(2025, 3, 12))
    assert entry.provenance == Provenance.FROM_APPROVED_REQUEST
    assert entry.source_request_id == first.id
    assert entry.day_type == DayType.VACATION
    assert [e.date for e in store.entries_from_request(first.id)] == [
        date(2025, 3, 11), date(2025, 3, 12), date(2025, 3, 13)
    ]


def test_stacked_corrections_unwind_to_the_manual_day(db_session, service, roster):
    """The manual day under two stacked approvals survives both corrections."""
    tom, sup = roster["technician"], roster["supervisor"]
    engine = ScheduleEngine(db_session)
    week = engine.generate_week(MONDAY, sup.id)
    engine.edit_day(week.id, tom.id, date(2025, 3, 12), DayPatch(day_type=DayType.COMPENSATED), sup.role)
    first = _submit(service, tom, start=date(2025, 3, 11), end=date(2025, 3, 13))
    service.decide(first.id, LeaveStatus.APPROVED, sup.id)
    second = _submit(service, tom, start=date(2025, 3, 12), end=date(2025, 3, 12), type=LeaveType.PERMISSION)
    service.decide(second.id, LeaveStatus.APPROVED, sup.id)

    service.correct_status(second.id, LeaveStatus.REJECTED, roster["supervisor2"].id, "supervisor")
    assert DayStore(db_session).get(tom.id, date(2025, 3, 12)).source_request_id == first.id

    service.correct_status(first.id, LeaveStatus.REJECTED, roster["admin"].id, EmployeeRole.ADMIN)

    db_session.expire_all()
    entry = DayStore(db_session).get(tom.id, date(2025, 3, 12))
    assert entry.day_type == DayType.COMPENSATED
    assert entry.provenance == Provenance.MANUAL
    assert entry.source_request_id is None


def test_edit_after_concurrent_approval_is_refused(tmp_path):
    """An owner editing from a stale read cannot move an already approved request."""
    engine = create_engine(f"sqlite:///{tmp_path / 'edit_race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    first, second = Session(), Session()
    try:
        tom = make_employee(first, "Tom", EmployeeRole.TECHNICIAN)
        sup = make_employee(first, "Sam", EmployeeRole.SUPERVISOR)
        request = _submit(LeaveRequestService(first), tom)

        # The owner's session still sees the request as pending
        stale = LeaveRequestService(second).get(request.id)
        assert stale.status == LeaveStatus.PENDING

        LeaveRequestService(first).decide(request.id, LeaveStatus.APPROVED, sup.id)
        with pytest.raises(ConflictError):
            LeaveRequestService(second).edit(
                request.id, {"date_start": date(2025, 3, 20), "date_end": date(2025, 3, 21)}, tom.id
            )

        second.expire_all()
        reloaded = LeaveRequestService(second).get(request.id)
        assert reloaded.status == LeaveStatus.APPROVED
        assert (reloaded.date_start, reloaded.date_end) == (date(2025, 3, 11), date(2025, 3, 12))
        stamped = DayStore(second).entries_from_request(request.id)
        assert [e.date for e in stamped] == [date(2025, 3, 11), date(2025, 3, 12)]
    finally:
        first.close()
        second.close()
        engine.dispose()
