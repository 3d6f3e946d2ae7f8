"""Manual channel: lock, unlock, manual assign and trainee assign.

These are the entry points a front end calls between solver runs. They go
through the same placement primitives as the engine, so a change to one
paired 1:2 student is always applied to its partner as well.
"""

import logging
from typing import Optional

from aba_scheduler.diagnostics import describe
from aba_scheduler.eligibility import check_unit
from aba_scheduler.errors import (
    AssignmentNotFoundError, IneligibleAssignmentError, SlotFullError, UnknownEntityError,
)
from aba_scheduler.models import Assignment, Origin, Schedule, Session, Staff, Student
from aba_scheduler.placement import missing_staff, mirrors_of, place, unplace
from aba_scheduler.roster import Roster

logger = logging.getLogger(__name__)


def _find(schedule: Schedule, assignment_id: str) -> Assignment:
    found = schedule.get(assignment_id)
    if found is None:
        raise AssignmentNotFoundError(f"Assignment {assignment_id} not found")
    return found


def _resolve(roster: Roster, staff_id: str, student_id: str) -> tuple[Staff, Student]:
    staff = roster.get_staff(staff_id)
    if staff is None:
        raise UnknownEntityError(f"Staff {staff_id} not found")
    student = roster.get_student(student_id)
    if student is None:
        raise UnknownEntityError(f"Student {student_id} not found")
    return staff, student


def lock_assignment(schedule: Schedule, roster: Roster, assignment_id: str) -> list[Assignment]:
    """Pin an assignment (and its paired mirror) against automatic reassignment."""
    target = _find(schedule, assignment_id)
    group = [target] + mirrors_of(schedule, roster, target)
    for a in group:
        schedule.lock(a.id)
    logger.info("Locked %s", ", ".join(a.id for a in group))
    return group


def unlock_assignment(schedule: Schedule, roster: Roster, assignment_id: str) -> list[Assignment]:
    """Unlocking removes the assignment outright, together with its paired mirror."""
    target = _find(schedule, assignment_id)
    removed = unplace(schedule, roster, target)
    logger.info("Unlocked and removed %s", ", ".join(a.id for a in removed))
    return removed


def manual_assign(schedule: Schedule, roster: Roster, staff_id: str, student_id: str,
                  session: Session, program: Optional[str] = None, *,
                  temporary_override: bool = False, lock: bool = False) -> list[Assignment]:
    """Place a staff member by hand, bypassing the greedy pass but not the filter.

    `temporary_override` waives the team-membership rule for this one call.
    """
    staff, student = _resolve(roster, staff_id, student_id)
    program = program or student.program
    unit = roster.unit_of(student, session)

    blocker = check_unit(staff, unit, session, program, schedule, roster.day,
                         roster=roster, temporary_override=temporary_override)
    if blocker is not None:
        raise IneligibleAssignmentError(
            f"{staff.name} cannot be assigned to {student.name} "
            f"({program} {session.value}): {describe(blocker)}",
            blocker,
        )
    if missing_staff(schedule, roster, student, session, program) == 0:
        raise SlotFullError(
            f"{student.name} already has {student.required_staff(session)} staff "
            f"for {program} {session.value}"
        )

    created = place(schedule, roster, staff.id, student, session, program,
                    origin=Origin.MANUAL, locked=lock)
    logger.info("Manual assignment: %s -> %s (%s %s)%s", staff.id, student.id, program,
                session.value, " [override]" if temporary_override else "")
    return created


def trainee_assign(schedule: Schedule, roster: Roster, staff_id: str, student_id: str,
                   session: Session, program: Optional[str] = None) -> list[Assignment]:
    """Place a staff member on the trainee channel, where overlap status is allowed."""
    staff, student = _resolve(roster, staff_id, student_id)
    program = program or student.program
    unit = roster.unit_of(student, session)

    blocker = check_unit(staff, unit, session, program, schedule, roster.day,
                         roster=roster, trainee=True)
    if blocker is not None:
        raise IneligibleAssignmentError(
            f"{staff.name} cannot train with {student.name} "
            f"({program} {session.value}): {describe(blocker)}",
            blocker,
        )
    if schedule.for_student(student.id, session, program, trainee=True):
        raise SlotFullError(f"{student.name} already has a trainee for {program} {session.value}")

    created = place(schedule, roster, staff.id, student, session, program,
                    origin=Origin.MANUAL, trainee=True)
    logger.info("Trainee assignment: %s -> %s (%s %s)", staff.id, student.id, program, session.value)
    return created
