"""Greedy + swap staffing engine for one schedule date."""

import logging

from aba_scheduler.diagnostics import diagnose, schedule_stats
from aba_scheduler.greedy import greedy_pass
from aba_scheduler.models import (
    Assignment, IntegrityIssue, RosterPayload, Schedule, SolveRequest, SolveResponse,
)
from aba_scheduler.optimizer import optimize
from aba_scheduler.placement import restore_pair_symmetry
from aba_scheduler.roster import Roster

logger = logging.getLogger(__name__)


def sanitize_schedule(schedule: Schedule, roster: Roster) -> tuple[list[Assignment], list[IntegrityIssue]]:
    """Drop assignments that reference ids missing from the rosters.

    A stale record is skipped and reported rather than failing the run.
    """
    skipped: list[Assignment] = []
    issues: list[IntegrityIssue] = []

    for a in list(schedule.assignments):
        if roster.get_staff(a.staffId) is None:
            kind, subject = "unknown-staff", a.staffId
        elif roster.get_student(a.studentId) is None:
            kind, subject = "unknown-student", a.studentId
        else:
            continue
        detail = f"Assignment {a.id} references {kind.split('-')[1]} {subject} not on the roster; skipped"
        logger.warning(detail)
        schedule.remove(a.id)
        skipped.append(a)
        issues.append(IntegrityIssue(kind=kind, subjectId=subject, detail=detail))

    for lock_id in sorted(schedule.lockedIds):
        if schedule.get(lock_id) is None:
            detail = f"Locked id {lock_id} has no assignment; lock dropped"
            logger.warning(detail)
            schedule.lockedIds.discard(lock_id)
            issues.append(IntegrityIssue(kind="dangling-lock", subjectId=lock_id, detail=detail))

    return skipped, issues


def prepare(req: RosterPayload) -> tuple[Schedule, Roster, list[Assignment], list[IntegrityIssue]]:
    """Working copy of the request schedule plus a roster for its date."""
    schedule = req.schedule.model_copy(deep=True)
    roster = Roster(req.staff, req.students, schedule.date,
                    temporary_team=req.temporaryTeam, config=req.config)
    skipped, issues = sanitize_schedule(schedule, roster)
    restore_pair_symmetry(schedule, roster)
    return schedule, roster, skipped, roster.issues + issues


def build_and_solve(req: SolveRequest) -> SolveResponse:
    """Greedy pass first, then the swap optimizer on whatever is left."""
    schedule, roster, skipped, issues = prepare(req)

    if not roster.staff or not roster.students:
        return SolveResponse(
            schedule=schedule, success=True,
            statusMessage="No students or staff to schedule.",
            integrityIssues=issues, skippedAssignments=skipped,
        )

    logger.info("Starting solve for %s: %d students, %d staff, %d existing assignment(s)",
                schedule.date.isoformat(), len(roster.students), len(roster.staff),
                len(schedule.assignments))

    greedy_fills, gaps = greedy_pass(schedule, roster)
    summary = optimize(schedule, roster, gaps, req.config.maxIterations)
    diagnostics = diagnose(schedule, roster, summary.unresolved)

    success = not summary.unresolved
    if success:
        message = "All open slots staffed."
    else:
        message = f"{len(summary.unresolved)} slot(s) left unstaffed."
    if summary.capReached:
        message += " Swap iteration cap reached."

    return SolveResponse(
        schedule=schedule,
        success=success,
        statusMessage=message,
        greedyFills=greedy_fills,
        summary=summary,
        diagnostics=diagnostics,
        stats=schedule_stats(schedule, roster),
        integrityIssues=issues,
        skippedAssignments=skipped,
    )
