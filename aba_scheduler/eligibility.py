"""Eligibility filter: may a staff member take a student's slot in a session?"""

import datetime as dt
from typing import Iterable, Optional

from aba_scheduler.models import (
    Blocker, EligibilityTrace, Schedule, Session, Staff, Student,
)
from aba_scheduler.roster import Roster


def check_eligibility(staff: Staff, student: Student, session: Session, program: str,
                      schedule: Schedule, day: dt.date, *, roster: Roster,
                      temporary_override: bool = False, trainee: bool = False,
                      ignore: Iterable[str] = (),
                      trace: Optional[list] = None) -> Optional[Blocker]:
    """Return the first failing rule, or None when the placement is allowed.

    Rules are evaluated fail-fast in a fixed order so the reported blocker is
    stable. `trainee=True` applies the trainee-channel filter, which skips the
    training-status rule. Assignment ids in `ignore` are treated as already
    removed, which lets a swap be evaluated without touching the schedule.
    """
    blocker = _first_blocker(staff, student, session, program, schedule, day, roster,
                             temporary_override, trainee, set(ignore))
    if trace is not None:
        trace.append(EligibilityTrace(
            staffId=staff.id, studentId=student.id,
            session=session, program=program, blocker=blocker,
        ))
    return blocker


def _first_blocker(staff: Staff, student: Student, session: Session, program: str,
                   schedule: Schedule, day: dt.date, roster: Roster,
                   temporary_override: bool, trainee: bool, ignore: set[str]) -> Optional[Blocker]:
    if not staff.isActive:
        return Blocker.INACTIVE
    if staff.role in roster.config.nonDirectRoles:
        return Blocker.NOT_DIRECT_SERVICE
    if not staff.supports(program):
        return Blocker.PROGRAM
    if not staff.is_available_for(session):
        return Blocker.STAFF_UNAVAILABLE
    if not (student.isActive and student.attends_on(day) and student.is_available_for(session)):
        return Blocker.STUDENT_UNAVAILABLE

    # a shared 1:2 placement is one slot even though it spans two assignments
    unit_ids = [c.id for c in roster.unit_of(student, session)]
    if schedule.staff_conflicts(staff.id, session, program, allowed_students=unit_ids, ignore=ignore):
        return Blocker.DOUBLE_BOOKED
    if schedule.worked_together(staff.id, student.id, ignore=ignore):
        return Blocker.WORKED_TODAY

    if not temporary_override and not roster.is_on_team(staff, student):
        return Blocker.NOT_ON_TEAM
    if not trainee and student.training_status_for(staff.id).is_training_only:
        return Blocker.TRAINING_ONLY
    return None


def is_eligible(staff: Staff, student: Student, session: Session, program: str,
                schedule: Schedule, day: dt.date, **kwargs) -> bool:
    return check_eligibility(staff, student, session, program, schedule, day, **kwargs) is None


def check_unit(staff: Staff, unit: list[Student], session: Session, program: str,
               schedule: Schedule, day: dt.date, **kwargs) -> Optional[Blocker]:
    """Filter a staff member against every student of a paired unit."""
    for student in unit:
        blocker = check_eligibility(staff, student, session, program, schedule, day, **kwargs)
        if blocker is not None:
            return blocker
    return None


def candidates(unit: list[Student], session: Session, program: str, schedule: Schedule,
               roster: Roster, *, exclude: Iterable[str] = (), **kwargs) -> list[Staff]:
    """Eligible staff for a unit in candidate priority order."""
    skip = set(exclude)
    pool = sorted((s for s in roster.staff if s.id not in skip), key=roster.priority)
    return [
        s for s in pool
        if check_unit(s, unit, session, program, schedule, roster.day, roster=roster, **kwargs) is None
    ]
