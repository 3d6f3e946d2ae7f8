"""Read-only reporting: why gaps stayed open, and schedule statistics."""

from collections import Counter
from typing import Optional

from aba_scheduler.eligibility import candidates, check_unit
from aba_scheduler.models import (
    Blocker, EligibilityTrace, Gap, GapDiagnostic, MemberDiagnostic, Schedule, ScheduleStats,
    Session, StaffUtilization, Student,
)
from aba_scheduler.placement import missing_staff, mirrors_of
from aba_scheduler.roster import Roster


BLOCKER_TEXT = {
    Blocker.INACTIVE: "staff member is inactive",
    Blocker.NOT_DIRECT_SERVICE: "role does not provide direct service",
    Blocker.PROGRAM: "staff member does not work this program",
    Blocker.STAFF_UNAVAILABLE: "staff member is absent or out of session",
    Blocker.STUDENT_UNAVAILABLE: "student is not attending this session",
    Blocker.DOUBLE_BOOKED: "staff member is already placed in this session",
    Blocker.WORKED_TODAY: "already worked together today",
    Blocker.NOT_ON_TEAM: "not on the student's team",
    Blocker.TRAINING_ONLY: "training-only (overlap) with this student",
    Blocker.LOCKED: "current assignment is locked",
    Blocker.TRAINEE_CHANNEL: "currently placed as a trainee",
    Blocker.NO_TEAM_OVERLAP: "no one else on the other student's team",
    Blocker.UNKNOWN_STAFF: "not on the staff roster",
}


def describe(blocker: Optional[Blocker]) -> str:
    if blocker is None:
        return "eligible"
    return BLOCKER_TEXT[blocker]


def diagnose(schedule: Schedule, roster: Roster, gaps: list[Gap]) -> list[GapDiagnostic]:
    results = []
    for gap in gaps:
        student = roster.get_student(gap.studentId)
        if student is None:
            continue
        trace: list[EligibilityTrace] = []
        members = [
            _member(schedule, roster, student, gap.session, gap.program, staff_id, trace)
            for staff_id in roster.team_of(student)
        ]
        results.append(GapDiagnostic(gap=gap, members=members, trace=trace))
    return results


def _member(schedule: Schedule, roster: Roster, student: Student, session: Session,
            program: str, staff_id: str, trace: list[EligibilityTrace]) -> MemberDiagnostic:
    staff = roster.get_staff(staff_id)
    if staff is None:
        return MemberDiagnostic(staffId=staff_id, blocker=Blocker.UNKNOWN_STAFF,
                                detail=describe(Blocker.UNKNOWN_STAFF))

    unit = roster.unit_of(student, session)
    unit_ids = {m.id for m in unit}
    held = next(
        (a for a in schedule.for_staff(staff.id, session, program) if a.studentId not in unit_ids),
        None,
    )
    if held is None:
        blocker = check_unit(staff, unit, session, program, schedule, roster.day,
                             roster=roster, trace=trace)
        return MemberDiagnostic(staffId=staff.id, staffName=staff.name,
                                blocker=blocker, detail=describe(blocker))

    diag = MemberDiagnostic(
        staffId=staff.id,
        staffName=staff.name,
        assignmentId=held.id,
        assignedStudentId=held.studentId,
        isLocked=schedule.is_locked(held.id),
        isTrainee=held.isTrainee,
    )
    group = [held] + mirrors_of(schedule, roster, held)
    if held.isTrainee:
        diag.blocker = Blocker.TRAINEE_CHANNEL
    elif any(schedule.is_locked(a.id) for a in group):
        diag.blocker = Blocker.LOCKED
    if diag.blocker is not None:
        diag.detail = f"with {held.studentId}: {describe(diag.blocker)}"
        return diag

    freed = {a.id for a in group}
    own = check_unit(staff, unit, session, program, schedule, roster.day,
                     roster=roster, ignore=freed, trace=trace)
    if own is not None:
        diag.blocker = own
        diag.detail = f"cannot move to {student.id}: {describe(own)}"
        return diag

    other = roster.get_student(held.studentId)
    if other is None:
        diag.blocker = Blocker.NO_TEAM_OVERLAP
        diag.detail = f"{held.studentId} is not on the student roster"
        return diag

    other_unit = roster.unit_of(other, session)
    pool = [i for i in roster.team_of(other) if i != staff.id]
    if not pool:
        diag.blocker = Blocker.NO_TEAM_OVERLAP
        diag.detail = f"no replacement for {other.id}: {describe(Blocker.NO_TEAM_OVERLAP)}"
        return diag

    eligible = candidates(other_unit, session, program, schedule, roster,
                          exclude=[staff.id], ignore=freed)
    if eligible:
        diag.replacementIds = [s.id for s in eligible]
        diag.detail = f"replacement available for {other.id}: {', '.join(diag.replacementIds)}"
        return diag

    reasons = Counter()
    for replacement_id in pool:
        replacement = roster.get_staff(replacement_id)
        if replacement is None:
            reasons[Blocker.UNKNOWN_STAFF] += 1
            continue
        reason = check_unit(replacement, other_unit, session, program, schedule,
                            roster.day, roster=roster, ignore=freed)
        if reason is not None:
            reasons[reason] += 1
    diag.blocker = reasons.most_common(1)[0][0] if reasons else Blocker.NO_TEAM_OVERLAP
    diag.detail = f"no replacement for {other.id}: {describe(diag.blocker)}"
    return diag


def schedule_stats(schedule: Schedule, roster: Roster) -> ScheduleStats:
    stats = ScheduleStats(
        totalAssignments=len(schedule.assignments),
        traineeAssignments=sum(1 for a in schedule.assignments if a.isTrainee),
    )
    for program in roster.programs:
        for session in Session:
            stats.assignmentsBySlot[f"{program}_{session.value}"] = len(
                schedule.for_slot(session, program)
            )

    for staff in sorted(roster.staff, key=lambda s: s.id):
        if not staff.isActive:
            continue
        # a shared 1:2 placement counts once
        slots = {(a.session, a.program) for a in schedule.for_staff(staff.id) if not a.isTrainee}
        stats.staffUtilization.append(StaffUtilization(
            staffId=staff.id,
            name=staff.name,
            assignmentCount=len(slots),
            utilizationRate=len(slots) / len(Session),
        ))

    for student in sorted(roster.students, key=lambda c: c.id):
        if any(missing_staff(schedule, roster, student, session, student.program) > 0
               for session in Session):
            stats.understaffedStudents.append(student.id)
    return stats
