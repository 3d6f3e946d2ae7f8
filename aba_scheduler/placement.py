"""Schedule mutation primitives. Every add/remove goes through here so paired
1:2 students always end up holding the same staff."""

import logging
from typing import Optional

from aba_scheduler.eligibility import check_eligibility
from aba_scheduler.models import Assignment, Blocker, Origin, Schedule, Session, Student
from aba_scheduler.roster import Roster

logger = logging.getLogger(__name__)


def primary_count(schedule: Schedule, student: Student, session: Session, program: str) -> int:
    return len(schedule.for_student(student.id, session, program, trainee=False))


def missing_staff(schedule: Schedule, roster: Roster, student: Student,
                  session: Session, program: str) -> int:
    if not roster.is_open(student, session):
        return 0
    return max(0, student.required_staff(session) - primary_count(schedule, student, session, program))


def place(schedule: Schedule, roster: Roster, staff_id: str, student: Student,
          session: Session, program: str, *, origin: Origin = Origin.AUTO,
          trainee: bool = False, locked: bool = False) -> list[Assignment]:
    """Assign `staff_id` to the student and to its active pairing partner."""
    created = []
    for member in roster.unit_of(student, session):
        existing = schedule.for_student(member.id, session, program, trainee=trainee)
        if any(a.staffId == staff_id for a in existing):
            continue
        created.append(schedule.add(Assignment(
            staffId=staff_id,
            studentId=member.id,
            session=session,
            program=program,
            isLocked=locked,
            origin=origin,
            isTrainee=trainee,
        )))
    logger.debug("Placed %s on %s %s %s (%d assignment(s))",
                 staff_id, [c.id for c in roster.unit_of(student, session)],
                 program, session.value, len(created))
    return created


def mirrors_of(schedule: Schedule, roster: Roster, assignment: Assignment) -> list[Assignment]:
    """The partner's copy of a paired assignment, if any."""
    student = roster.get_student(assignment.studentId)
    if student is None:
        return []
    partner = roster.partner_of(student, assignment.session)
    if partner is None:
        return []
    return [
        a for a in schedule.for_student(partner.id, assignment.session, assignment.program,
                                        trainee=assignment.isTrainee)
        if a.staffId == assignment.staffId
    ]


def unplace(schedule: Schedule, roster: Roster, assignment: Assignment) -> list[Assignment]:
    """Remove an assignment together with its paired mirror."""
    removed = []
    for a in [assignment] + mirrors_of(schedule, roster, assignment):
        found = schedule.remove(a.id)
        if found is not None:
            removed.append(found)
    return removed


def _twins(schedule: Schedule, a: Assignment, partner: Student) -> list[Assignment]:
    return [
        b for b in schedule.for_student(partner.id, a.session, a.program, trainee=a.isTrainee)
        if b.staffId == a.staffId
    ]


def restore_pair_symmetry(schedule: Schedule, roster: Roster) -> list[Assignment]:
    """Copy any assignment held by one paired student onto its partner.

    Lock state follows the locked side. A copy must pass the eligibility
    filter for the partner; when one does not, no copies are made and the
    pairing is switched off for that session.
    """
    created = []
    for student in sorted(roster.students, key=lambda c: c.id):
        for session in Session:
            partner = roster.partner_of(student, session)
            if partner is None or partner.id < student.id:
                continue

            needed = []
            for src, dst in ((student, partner), (partner, student)):
                for a in schedule.for_student(src.id, session):
                    twins = _twins(schedule, a, dst)
                    if not twins:
                        needed.append((a, dst))
                    elif schedule.is_locked(a.id):
                        for b in twins:
                            schedule.lock(b.id)

            conflict = None
            for a, dst in needed:
                blocker = _mirror_blocker(schedule, roster, a, dst)
                if blocker is not None:
                    conflict = (f"{a.staffId} on {a.studentId} cannot be mirrored onto {dst.id} "
                                f"({session.value}): {blocker.value}; pairing ignored for the session")
                    break
            if conflict is not None:
                roster.break_pairing(student, partner, session, conflict)
                continue

            for a, dst in needed:
                created.append(schedule.add(Assignment(
                    staffId=a.staffId,
                    studentId=dst.id,
                    session=session,
                    program=a.program,
                    isLocked=schedule.is_locked(a.id),
                    origin=a.origin,
                    isTrainee=a.isTrainee,
                )))
    if created:
        logger.info("Restored pairing symmetry with %d mirrored assignment(s)", len(created))
    return created


def _mirror_blocker(schedule: Schedule, roster: Roster, a: Assignment,
                    partner: Student) -> Optional[Blocker]:
    staff = roster.get_staff(a.staffId)
    if staff is None:
        return Blocker.UNKNOWN_STAFF
    return check_eligibility(staff, partner, a.session, a.program, schedule, roster.day,
                             roster=roster, trainee=a.isTrainee, ignore={a.id})
