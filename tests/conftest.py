import datetime as dt

import pytest

from aba_scheduler.models import (
    EngineConfig, Schedule, SolveRequest, Staff, Student,
)
from aba_scheduler.roster import Roster
from aba_scheduler.solver import build_and_solve

MONDAY = dt.date(2026, 10, 19)


@pytest.fixture
def day():
    return MONDAY


@pytest.fixture
def make_staff():
    def _make(staff_id, role="RBT", programs=("Primary",), **kwargs):
        return Staff(
            id=staff_id,
            name=f"Staff {staff_id}",
            role=role,
            programs={p: True for p in programs},
            **kwargs,
        )
    return _make


@pytest.fixture
def make_student():
    def _make(student_id, team=(), program="Primary", **kwargs):
        return Student(
            id=student_id,
            name=f"Student {student_id}",
            program=program,
            teamIds=list(team),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_roster(day):
    def _make(staff, students, temporary_team=None, config=None):
        return Roster(staff, students, day, temporary_team=temporary_team, config=config)
    return _make


@pytest.fixture
def solve(day):
    """Run the full engine and return the response."""
    def _solve(staff, students, assignments=(), locked_ids=(), max_iterations=10, **kwargs):
        req = SolveRequest(
            staff=staff,
            students=students,
            schedule=Schedule(date=day, assignments=list(assignments), lockedIds=set(locked_ids)),
            config=EngineConfig(maxIterations=max_iterations),
            **kwargs,
        )
        return build_and_solve(req)
    return _solve


@pytest.fixture
def pairs():
    """(staff, student, session) tuples for quick comparisons."""
    def _pairs(schedule, session=None, trainee=False):
        return {
            (a.staffId, a.studentId, a.session.value)
            for a in schedule.assignments
            if (session is None or a.session == session) and a.isTrainee == trainee
        }
    return _pairs
