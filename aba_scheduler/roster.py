"""Per-date index over the staff and student rosters."""

import logging
import datetime as dt
from typing import Optional

from aba_scheduler.models import (
    EngineConfig, IntegrityIssue, Ratio, Session, Staff, Student,
)

logger = logging.getLogger(__name__)


class Roster:
    """Lookups shared by every engine phase for one target date.

    Pairing references are validated here: a pairing counts only when both
    students point at each other. An asymmetric reference is reported as an
    integrity issue and neither direction is trusted.
    """

    def __init__(self, staff: list[Staff], students: list[Student], day: dt.date,
                 temporary_team: Optional[dict[str, list[str]]] = None,
                 config: Optional[EngineConfig] = None):
        self.day = day
        self.config = config or EngineConfig()
        self.issues: list[IntegrityIssue] = []

        self.staff_by_id: dict[str, Staff] = {}
        for s in staff:
            if s.id in self.staff_by_id:
                self._warn("duplicate-staff", s.id, f"Duplicate staff id {s.id}; keeping the first record")
                continue
            self.staff_by_id[s.id] = s

        self.students_by_id: dict[str, Student] = {}
        for c in students:
            if c.id in self.students_by_id:
                self._warn("duplicate-student", c.id, f"Duplicate student id {c.id}; keeping the first record")
                continue
            self.students_by_id[c.id] = c

        self.temporary_team = {k: list(v) for k, v in (temporary_team or {}).items()}
        self._check_teams()
        self._partners = self._validate_pairings()
        self._broken: set[tuple[str, Session]] = set()

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def _warn(self, kind: str, subject_id: str, detail: str) -> None:
        logger.warning(detail)
        self.issues.append(IntegrityIssue(kind=kind, subjectId=subject_id, detail=detail))

    def _check_teams(self) -> None:
        for c in self.students_by_id.values():
            for staff_id in c.teamIds:
                if staff_id not in self.staff_by_id:
                    self._warn("unknown-team-member", c.id,
                               f"Student {c.id} lists unknown staff {staff_id} on its team")
        for student_id in self.temporary_team:
            if student_id not in self.students_by_id:
                self._warn("unknown-student", student_id,
                           f"Temporary team additions reference unknown student {student_id}")

    def _validate_pairings(self) -> dict[str, str]:
        partners: dict[str, str] = {}
        for c in self.students_by_id.values():
            if not c.pairedWith:
                continue
            if c.pairedWith == c.id:
                self._warn("self-pairing", c.id, f"Student {c.id} is paired with itself; pairing ignored")
                continue
            other = self.students_by_id.get(c.pairedWith)
            if other is None:
                self._warn("unknown-partner", c.id,
                           f"Student {c.id} is paired with unknown student {c.pairedWith}")
                continue
            if other.pairedWith != c.id:
                self._warn("asymmetric-pairing", c.id,
                           f"Student {c.id} points at {other.id} but {other.id} points at "
                           f"{other.pairedWith!r}; pairing ignored")
                continue
            if other.program != c.program:
                self._warn("pairing-program-mismatch", c.id,
                           f"Paired students {c.id} and {other.id} are in different programs; pairing ignored")
                continue
            partners[c.id] = other.id
        return partners

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def staff(self) -> list[Staff]:
        return list(self.staff_by_id.values())

    @property
    def students(self) -> list[Student]:
        return list(self.students_by_id.values())

    @property
    def programs(self) -> list[str]:
        return sorted({c.program for c in self.students_by_id.values()})

    def get_staff(self, staff_id: str) -> Optional[Staff]:
        return self.staff_by_id.get(staff_id)

    def get_student(self, student_id: str) -> Optional[Student]:
        return self.students_by_id.get(student_id)

    def rank(self, staff: Staff) -> int:
        return self.config.roleRanks.get(staff.role, self.config.defaultRoleRank)

    def priority(self, staff: Staff) -> tuple[int, str]:
        """Candidate order: front-line roles first, then staff id."""
        return (self.rank(staff), staff.id)

    def team_of(self, student: Student) -> list[str]:
        team = list(student.teamIds)
        for staff_id in self.temporary_team.get(student.id, []):
            if staff_id not in team:
                team.append(staff_id)
        return team

    def is_on_team(self, staff: Staff, student: Student) -> bool:
        return staff.id in self.team_of(student)

    def is_open(self, student: Student, session: Session) -> bool:
        """True when the student needs staffing in this session on the roster date."""
        return (
            student.isActive
            and student.attends_on(self.day)
            and student.is_available_for(session)
        )

    def partner_of(self, student: Student, session: Session) -> Optional[Student]:
        partner_id = self._partners.get(student.id)
        if partner_id is None or (student.id, session) in self._broken:
            return None
        partner = self.students_by_id[partner_id]
        for c in (student, partner):
            if c.ratio_for(session) is not Ratio.ONE_TO_TWO or not self.is_open(c, session):
                return None
        return partner

    def unit_of(self, student: Student, session: Session) -> list[Student]:
        partner = self.partner_of(student, session)
        if partner is None:
            return [student]
        return sorted([student, partner], key=lambda c: c.id)

    def break_pairing(self, student: Student, partner: Student, session: Session, detail: str) -> None:
        """Treat the two students as unpaired for one session."""
        self._broken.add((student.id, session))
        self._broken.add((partner.id, session))
        self._warn("pairing-conflict", student.id, detail)
