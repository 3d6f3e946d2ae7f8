"""Pydantic models for the session staffing engine, mirroring the front-end payloads."""

import os
import uuid
import datetime as dt
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field, model_validator


WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
DAY_NAMES = WEEKDAYS + ["Saturday", "Sunday"]  # indexed by date.weekday()


class Session(str, Enum):
    AM = "AM"
    PM = "PM"


class DayPart(str, Enum):
    """Granularity of an absence or out-of-session flag."""

    AM = "AM"
    PM = "PM"
    FULL_DAY = "FullDay"

    def covers(self, session: Session) -> bool:
        if self is DayPart.FULL_DAY:
            return True
        return self.value == session.value


class Ratio(str, Enum):
    ONE_TO_ONE = "1:1"
    TWO_TO_ONE = "2:1"
    ONE_TO_TWO = "1:2"  # one staff shared by two paired students

    @property
    def staff_needed(self) -> int:
        return 2 if self is Ratio.TWO_TO_ONE else 1


class TrainingStatus(str, Enum):
    SOLO = "solo"
    TRAINER = "trainer"
    OVERLAP_STAFF = "overlap-staff"
    OVERLAP_BCBA = "overlap-bcba"

    @property
    def is_training_only(self) -> bool:
        return self in (TrainingStatus.OVERLAP_STAFF, TrainingStatus.OVERLAP_BCBA)


class Origin(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class Blocker(str, Enum):
    """Why a staff member cannot take a slot. Eligibility rules come first, in filter order."""

    INACTIVE = "inactive"
    NOT_DIRECT_SERVICE = "not-direct-service"
    PROGRAM = "program"
    STAFF_UNAVAILABLE = "staff-unavailable"
    STUDENT_UNAVAILABLE = "student-unavailable"
    DOUBLE_BOOKED = "double-booked"
    WORKED_TODAY = "worked-today"
    NOT_ON_TEAM = "not-on-team"
    TRAINING_ONLY = "training-only"
    # diagnostics only
    LOCKED = "locked"
    TRAINEE_CHANNEL = "trainee-channel"
    NO_TEAM_OVERLAP = "no-team-overlap"
    UNKNOWN_STAFF = "unknown-staff"


def new_assignment_id() -> str:
    return f"asg-{uuid.uuid4().hex[:12]}"


# ---------------------------------------------------------------------------
# Rosters
# ---------------------------------------------------------------------------

def _fold_flags(data: dict, prefix: str, field: str) -> dict:
    am = bool(data.get(f"{prefix}AM"))
    pm = bool(data.get(f"{prefix}PM"))
    full = bool(data.get(f"{prefix}FullDay"))
    if data.get(field) is not None or not (am or pm or full):
        return data
    data = dict(data)
    if full or (am and pm):
        data[field] = DayPart.FULL_DAY
    elif am:
        data[field] = DayPart.AM
    else:
        data[field] = DayPart.PM
    return data


class Attendance(BaseModel):
    absence: Optional[DayPart] = None
    outOfSession: Optional[DayPart] = None

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_flags(cls, data):
        # absentAM / absentPM / absentFullDay and the outOfSession* trio
        if isinstance(data, dict):
            data = _fold_flags(data, "absent", "absence")
            data = _fold_flags(data, "outOfSession", "outOfSession")
        return data

    def is_available_for(self, session: Session) -> bool:
        for part in (self.absence, self.outOfSession):
            if part is not None and part.covers(session):
                return False
        return True


class Staff(Attendance):
    id: str
    name: str
    role: str  # "RBT" | "BS" | "EA" | "BCBA" | ...
    isActive: bool = True
    programs: dict[str, bool] = Field(default_factory=dict)

    def supports(self, program: str) -> bool:
        return self.programs.get(program, False)


class Student(Attendance):
    id: str
    name: str
    program: str  # "Primary" | "Secondary"
    ratioAM: Ratio = Ratio.ONE_TO_ONE
    ratioPM: Ratio = Ratio.ONE_TO_ONE
    isActive: bool = True
    attendanceDays: list[str] = Field(default_factory=lambda: list(WEEKDAYS))
    teamIds: list[str] = Field(default_factory=list)
    trainingStatus: dict[str, TrainingStatus] = Field(default_factory=dict)
    pairedWith: Optional[str] = None

    def ratio_for(self, session: Session) -> Ratio:
        return self.ratioAM if session is Session.AM else self.ratioPM

    def required_staff(self, session: Session) -> int:
        return self.ratio_for(session).staff_needed

    def training_status_for(self, staff_id: str) -> TrainingStatus:
        return self.trainingStatus.get(staff_id, TrainingStatus.SOLO)

    def attends_on(self, day: dt.date) -> bool:
        return DAY_NAMES[day.weekday()] in self.attendanceDays


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------

class Assignment(BaseModel):
    id: str = Field(default_factory=new_assignment_id)
    staffId: str
    studentId: str
    session: Session
    program: str
    isLocked: bool = False
    origin: Origin = Origin.AUTO
    isTrainee: bool = False  # supervised overlap placement, not a primary slot


class Schedule(BaseModel):
    date: dt.date
    assignments: list[Assignment] = Field(default_factory=list)
    lockedIds: set[str] = Field(default_factory=set)

    @model_validator(mode="after")
    def sync_locks(self):
        for a in self.assignments:
            if a.isLocked:
                self.lockedIds.add(a.id)
        for a in self.assignments:
            if a.id in self.lockedIds:
                a.isLocked = True
        return self

    def get(self, assignment_id: str) -> Optional[Assignment]:
        return next((a for a in self.assignments if a.id == assignment_id), None)

    def is_locked(self, assignment_id: str) -> bool:
        return assignment_id in self.lockedIds

    def for_slot(self, session: Session, program: str, trainee: Optional[bool] = False) -> list[Assignment]:
        return [
            a for a in self.assignments
            if a.session == session and a.program == program
            and (trainee is None or a.isTrainee == trainee)
        ]

    def for_student(self, student_id: str, session: Optional[Session] = None,
                    program: Optional[str] = None, trainee: Optional[bool] = None) -> list[Assignment]:
        return [
            a for a in self.assignments
            if a.studentId == student_id
            and (session is None or a.session == session)
            and (program is None or a.program == program)
            and (trainee is None or a.isTrainee == trainee)
        ]

    def for_staff(self, staff_id: str, session: Optional[Session] = None,
                  program: Optional[str] = None) -> list[Assignment]:
        return [
            a for a in self.assignments
            if a.staffId == staff_id
            and (session is None or a.session == session)
            and (program is None or a.program == program)
        ]

    def staff_conflicts(self, staff_id: str, session: Session, program: str,
                        allowed_students: Iterable[str] = (), ignore: Iterable[str] = ()) -> list[Assignment]:
        """Assignments that keep `staff_id` busy in the slot, other than ones to `allowed_students`."""
        allowed = set(allowed_students)
        skip = set(ignore)
        return [
            a for a in self.for_staff(staff_id, session, program)
            if a.studentId not in allowed and a.id not in skip
        ]

    def worked_together(self, staff_id: str, student_id: str, ignore: Iterable[str] = ()) -> bool:
        skip = set(ignore)
        return any(
            a.staffId == staff_id and a.studentId == student_id and a.id not in skip
            for a in self.assignments
        )

    # Mutation helpers: call through placement / manual, never directly.

    def add(self, assignment: Assignment) -> Assignment:
        self.assignments.append(assignment)
        if assignment.isLocked:
            self.lockedIds.add(assignment.id)
        return assignment

    def remove(self, assignment_id: str) -> Optional[Assignment]:
        found = self.get(assignment_id)
        if found is not None:
            self.assignments = [a for a in self.assignments if a.id != assignment_id]
        self.lockedIds.discard(assignment_id)
        return found

    def lock(self, assignment_id: str) -> None:
        found = self.get(assignment_id)
        if found is not None:
            found.isLocked = True
            self.lockedIds.add(assignment_id)


class Gap(BaseModel):
    studentId: str
    session: Session
    program: str
    missing: int = 1
    pairedWith: Optional[str] = None


# ---------------------------------------------------------------------------
# Engine output
# ---------------------------------------------------------------------------

class EligibilityTrace(BaseModel):
    staffId: str
    studentId: str
    session: Session
    program: str
    blocker: Optional[Blocker] = None


class OptimizerEvent(BaseModel):
    kind: str  # "direct" | "swap"
    session: Session
    program: str
    studentId: str
    staffId: str
    displacedFromStudentId: Optional[str] = None
    backfillStaffId: Optional[str] = None


class OptimizerSummary(BaseModel):
    iterations: int = 0
    directFills: int = 0
    swaps: int = 0
    gapsFilled: int = 0
    capReached: bool = False
    unresolved: list[Gap] = Field(default_factory=list)
    events: list[OptimizerEvent] = Field(default_factory=list)


class MemberDiagnostic(BaseModel):
    staffId: str
    staffName: Optional[str] = None
    assignmentId: Optional[str] = None
    assignedStudentId: Optional[str] = None
    isLocked: bool = False
    isTrainee: bool = False
    replacementIds: list[str] = Field(default_factory=list)
    blocker: Optional[Blocker] = None
    detail: str = ""


class GapDiagnostic(BaseModel):
    gap: Gap
    members: list[MemberDiagnostic] = Field(default_factory=list)
    trace: list[EligibilityTrace] = Field(default_factory=list)  # filter checks against the gap student


class StaffUtilization(BaseModel):
    staffId: str
    name: str
    assignmentCount: int
    utilizationRate: float  # placements / sessions per day


class ScheduleStats(BaseModel):
    totalAssignments: int = 0
    traineeAssignments: int = 0
    assignmentsBySlot: dict[str, int] = Field(default_factory=dict)
    staffUtilization: list[StaffUtilization] = Field(default_factory=list)
    understaffedStudents: list[str] = Field(default_factory=list)


class IntegrityIssue(BaseModel):
    kind: str  # "unknown-staff" | "unknown-student" | "asymmetric-pairing" | ...
    subjectId: str
    detail: str


# ---------------------------------------------------------------------------
# Requests / responses
# ---------------------------------------------------------------------------

class EngineConfig(BaseModel):
    maxIterations: int = Field(
        default_factory=lambda: int(os.environ.get("SWAP_MAX_ITERATIONS", "10")), ge=1,
    )
    roleRanks: dict[str, int] = Field(default_factory=lambda: {
        "RBT": 1,
        "BS": 2,
        "EA": 10,
        "BCBA": 20,
        "CC": 21,
        "MHA": 22,
        "Teacher": 999,
        "Director": 999,
    })
    defaultRoleRank: int = 50
    nonDirectRoles: list[str] = Field(default_factory=lambda: ["Teacher", "Director"])


class RosterPayload(BaseModel):
    staff: list[Staff]
    students: list[Student]
    schedule: Schedule
    temporaryTeam: dict[str, list[str]] = Field(default_factory=dict)  # student id -> staff ids
    config: EngineConfig = Field(default_factory=EngineConfig)


class SolveRequest(RosterPayload):
    pass


class LockRequest(RosterPayload):
    assignmentId: str


class UnlockRequest(RosterPayload):
    assignmentId: str


class AssignRequest(RosterPayload):
    staffId: str
    studentId: str
    session: Session
    program: Optional[str] = None
    temporaryOverride: bool = False
    lock: bool = False


class TraineeAssignRequest(RosterPayload):
    staffId: str
    studentId: str
    session: Session
    program: Optional[str] = None


class SolveResponse(BaseModel):
    schedule: Schedule
    success: bool
    statusMessage: str
    solveTimeSeconds: float = 0.0
    greedyFills: int = 0
    summary: OptimizerSummary = Field(default_factory=OptimizerSummary)
    diagnostics: list[GapDiagnostic] = Field(default_factory=list)
    stats: ScheduleStats = Field(default_factory=ScheduleStats)
    integrityIssues: list[IntegrityIssue] = Field(default_factory=list)
    skippedAssignments: list[Assignment] = Field(default_factory=list)


class ScheduleResponse(BaseModel):
    schedule: Schedule
    changed: list[Assignment] = Field(default_factory=list)
    integrityIssues: list[IntegrityIssue] = Field(default_factory=list)
