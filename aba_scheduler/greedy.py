"""Greedy initial-assignment pass over every open student slot."""

import logging

from aba_scheduler.eligibility import candidates
from aba_scheduler.models import Gap, Origin, Ratio, Schedule, Session, Student
from aba_scheduler.placement import missing_staff, place
from aba_scheduler.roster import Roster

logger = logging.getLogger(__name__)


def ordered_units(roster: Roster, session: Session, program: str) -> list[list[Student]]:
    """Open slots for one session+program in processing order.

    Paired 1:2 units first, then 2:1 students, then everyone else. Within a
    group, students with smaller teams go first (fewer options), then by id.
    """
    paired, double, single = [], [], []
    seen: set[str] = set()
    open_students = sorted(
        (c for c in roster.students if c.program == program and roster.is_open(c, session)),
        key=lambda c: c.id,
    )
    for c in open_students:
        if c.id in seen:
            continue
        unit = roster.unit_of(c, session)
        seen.update(m.id for m in unit)
        if len(unit) > 1:
            paired.append(unit)
        elif c.ratio_for(session) is Ratio.TWO_TO_ONE:
            double.append(unit)
        else:
            single.append(unit)

    def key(unit):
        return (len(roster.team_of(unit[0])), unit[0].id)

    return sorted(paired, key=key) + sorted(double, key=key) + sorted(single, key=key)


def unit_gaps(schedule: Schedule, roster: Roster, unit: list[Student],
              session: Session, program: str) -> list[Gap]:
    gaps = []
    for member in unit:
        missing = missing_staff(schedule, roster, member, session, program)
        if missing > 0:
            partner = next((m.id for m in unit if m.id != member.id), None)
            gaps.append(Gap(studentId=member.id, session=session, program=program,
                            missing=missing, pairedWith=partner))
    return gaps


def greedy_pass(schedule: Schedule, roster: Roster) -> tuple[int, list[Gap]]:
    """Fill open slots in one forward pass; return (placements made, gaps left).

    Existing assignments, locked or not, are left alone.
    """
    fills = 0
    gaps: list[Gap] = []

    for program in roster.programs:
        for session in Session:
            units = ordered_units(roster, session, program)
            slot_fills = 0
            for unit in units:
                need = max(missing_staff(schedule, roster, m, session, program) for m in unit)
                while need > 0:
                    pool = candidates(unit, session, program, schedule, roster)
                    if not pool:
                        break
                    chosen = pool[0]
                    place(schedule, roster, chosen.id, unit[0], session, program, origin=Origin.AUTO)
                    logger.debug("Greedy: %s -> %s (%s %s)", chosen.id,
                                 "+".join(m.id for m in unit), program, session.value)
                    slot_fills += 1
                    need -= 1
                gaps.extend(unit_gaps(schedule, roster, unit, session, program))
            fills += slot_fills
            logger.debug("%s %s: %d unit(s), %d placement(s)", program, session.value,
                         len(units), slot_fills)

    logger.info("Greedy pass complete: %d placement(s), %d gap(s)", fills, len(gaps))
    return fills, gaps
