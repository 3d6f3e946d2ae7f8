"""Swap optimizer: iterative local search that repairs gaps left by the greedy pass."""

import logging
from typing import Optional

from aba_scheduler.eligibility import candidates, check_unit
from aba_scheduler.models import (
    Assignment, Gap, OptimizerEvent, OptimizerSummary, Origin, Schedule, Session, Student,
)
from aba_scheduler.placement import missing_staff, mirrors_of, place, unplace
from aba_scheduler.roster import Roster

logger = logging.getLogger(__name__)


def optimize(schedule: Schedule, roster: Roster, gaps: list[Gap],
             max_iterations: int) -> OptimizerSummary:
    """Repeat direct fills and single-hop swaps until a full pass makes no progress.

    Stops early when every gap is filled. Hitting `max_iterations` is reported
    through `capReached`, never raised.
    """
    summary = OptimizerSummary()
    pending = [g for g in gaps if _missing(schedule, roster, g) > 0]

    while pending and summary.iterations < max_iterations:
        summary.iterations += 1
        progress = False

        for gap in pending:
            student = roster.get_student(gap.studentId)
            if student is None:
                continue
            while missing_staff(schedule, roster, student, gap.session, gap.program) > 0:
                event = (
                    direct_fill(schedule, roster, student, gap.session, gap.program)
                    or single_hop_swap(schedule, roster, student, gap.session, gap.program)
                )
                if event is None:
                    break
                progress = True
                summary.events.append(event)
                if event.kind == "direct":
                    summary.directFills += 1
                else:
                    summary.swaps += 1

        still_open = [g for g in pending if _missing(schedule, roster, g) > 0]
        # a paired unit is one slot even though each member carries a gap
        summary.gapsFilled += len({_unit_key(roster, g) for g in pending if g not in still_open})
        pending = still_open
        logger.debug("Optimizer iteration %d: %d gap(s) open", summary.iterations, len(pending))

        if not progress:
            break
    else:
        if pending:
            summary.capReached = True
            logger.info("Swap optimizer hit the iteration cap (%d) with %d gap(s) open",
                        max_iterations, len(pending))

    summary.unresolved = [
        g.model_copy(update={"missing": _missing(schedule, roster, g)}) for g in pending
    ]
    logger.info("Swap optimizer: %d iteration(s), %d direct fill(s), %d swap(s), "
                "%d gap(s) filled, %d unresolved",
                summary.iterations, summary.directFills, summary.swaps,
                summary.gapsFilled, len(summary.unresolved))
    return summary


def _unit_key(roster: Roster, gap: Gap) -> tuple:
    student = roster.get_student(gap.studentId)
    if student is None:
        return ((gap.studentId,), gap.session, gap.program)
    return (tuple(m.id for m in roster.unit_of(student, gap.session)), gap.session, gap.program)


def _missing(schedule: Schedule, roster: Roster, gap: Gap) -> int:
    student = roster.get_student(gap.studentId)
    if student is None:
        return 0
    return missing_staff(schedule, roster, student, gap.session, gap.program)


def direct_fill(schedule: Schedule, roster: Roster, student: Student,
                session: Session, program: str) -> Optional[OptimizerEvent]:
    unit = roster.unit_of(student, session)
    pool = candidates(unit, session, program, schedule, roster)
    if not pool:
        return None
    chosen = pool[0]
    place(schedule, roster, chosen.id, student, session, program, origin=Origin.AUTO)
    logger.debug("Direct fill: %s -> %s (%s %s)", chosen.id, student.id, program, session.value)
    return OptimizerEvent(kind="direct", session=session, program=program,
                          studentId=student.id, staffId=chosen.id)


def _movable(schedule: Schedule, roster: Roster, held: Assignment) -> Optional[list[Assignment]]:
    """The held assignment plus its mirror, or None when any of them is locked."""
    group = [held] + mirrors_of(schedule, roster, held)
    if any(schedule.get(a.id) is None or schedule.is_locked(a.id) for a in group):
        return None
    return group


def single_hop_swap(schedule: Schedule, roster: Roster, student: Student,
                    session: Session, program: str) -> Optional[OptimizerEvent]:
    """Move a busy team member X onto the student and backfill X's student with a free Z."""
    unit = roster.unit_of(student, session)
    unit_ids = {m.id for m in unit}
    team = sorted(
        (s for s in (roster.get_staff(i) for i in roster.team_of(student)) if s is not None),
        key=roster.priority,
    )

    for x in team:
        held_list = [
            a for a in schedule.for_staff(x.id, session, program)
            if not a.isTrainee and a.studentId not in unit_ids
        ]
        for held in held_list:
            group = _movable(schedule, roster, held)
            if group is None:
                continue
            other = roster.get_student(held.studentId)
            if other is None:
                continue
            other_unit = roster.unit_of(other, session)
            if unit_ids & {m.id for m in other_unit}:
                continue

            freed = {a.id for a in group}
            if check_unit(x, unit, session, program, schedule, roster.day,
                          roster=roster, ignore=freed) is not None:
                continue

            backfill = candidates(other_unit, session, program, schedule, roster,
                                  exclude=[x.id], ignore=freed)
            if not backfill:
                continue
            z = backfill[0]

            # re-read lock state immediately before committing
            if _movable(schedule, roster, held) is None:
                continue
            unplace(schedule, roster, held)
            place(schedule, roster, x.id, student, session, program, origin=Origin.AUTO)
            place(schedule, roster, z.id, other, session, program, origin=Origin.AUTO)
            logger.debug("Swap: %s %s -> %s, %s backfills %s (%s %s)",
                         x.id, other.id, student.id, z.id, other.id, program, session.value)
            return OptimizerEvent(kind="swap", session=session, program=program,
                                  studentId=student.id, staffId=x.id,
                                  displacedFromStudentId=other.id, backfillStaffId=z.id)
    return None
