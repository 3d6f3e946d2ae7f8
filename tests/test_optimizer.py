import random
from collections import defaultdict

import pytest

from aba_scheduler.greedy import greedy_pass
from aba_scheduler.models import (
    Assignment, Blocker, DayPart, Ratio, Schedule, Session, TrainingStatus,
)
from aba_scheduler.optimizer import optimize


@pytest.fixture
def swap_roster(make_staff, make_student):
    """G needs a team member who is busy with Y; D can cover Y."""
    staff = [
        make_staff("A"),
        make_staff("B", absence=DayPart.AM),
        make_staff("C", absentFullDay=True),
        make_staff("D"),
    ]
    students = [
        make_student("G", ["A", "B", "C"], absence=DayPart.PM),
        make_student("Y", ["A", "D"], absence=DayPart.PM),
    ]
    return staff, students


def test_single_hop_swap_fills_gap(swap_roster, solve, pairs):
    staff, students = swap_roster
    resp = solve(staff, students)

    assert resp.success
    assert resp.greedyFills == 1
    assert resp.summary.swaps == 1
    assert resp.summary.directFills == 0
    assert resp.summary.gapsFilled == 1
    assert resp.summary.unresolved == []
    assert pairs(resp.schedule) == {("A", "G", "AM"), ("D", "Y", "AM")}

    event = resp.summary.events[0]
    assert (event.kind, event.staffId, event.displacedFromStudentId, event.backfillStaffId) == \
        ("swap", "A", "Y", "D")


def test_locked_assignment_is_never_moved(swap_roster, solve, pairs):
    staff, students = swap_roster
    locked = Assignment(id="lock-1", staffId="A", studentId="Y", session="AM",
                        program="Primary", isLocked=True)
    resp = solve(staff, students, assignments=[locked])

    assert not resp.success
    assert resp.summary.swaps == 0
    assert pairs(resp.schedule) == {("A", "Y", "AM")}
    assert resp.schedule.get("lock-1").isLocked

    [gap] = resp.summary.unresolved
    assert (gap.studentId, gap.session, gap.missing) == ("G", Session.AM, 1)

    [diag] = resp.diagnostics
    members = {m.staffId: m for m in diag.members}
    assert members["A"].blocker is Blocker.LOCKED
    assert members["A"].isLocked
    assert members["A"].assignedStudentId == "Y"
    assert members["B"].blocker is Blocker.STAFF_UNAVAILABLE
    assert members["C"].blocker is Blocker.STAFF_UNAVAILABLE


def test_lock_via_locked_ids_only(swap_roster, solve, pairs):
    staff, students = swap_roster
    held = Assignment(id="h", staffId="A", studentId="Y", session="AM", program="Primary")
    resp = solve(staff, students, assignments=[held], locked_ids={"h"})

    assert resp.summary.swaps == 0
    assert pairs(resp.schedule) == {("A", "Y", "AM")}


def test_training_only_staff_is_never_primary(make_staff, make_student, solve, pairs):
    staff = [make_staff("M"), make_staff("R")]
    students = [
        make_student("S1", ["M"], trainingStatus={"M": "overlap-staff"}, absence=DayPart.PM),
        make_student("S2", ["M", "R"], trainingStatus={"M": TrainingStatus.OVERLAP_BCBA},
                     absence=DayPart.PM),
    ]
    resp = solve(staff, students)

    assert not any(a.staffId == "M" for a in resp.schedule.assignments)
    assert pairs(resp.schedule) == {("R", "S2", "AM")}

    [diag] = resp.diagnostics
    assert diag.gap.studentId == "S1"
    assert diag.members[0].blocker is Blocker.TRAINING_ONLY


def test_swap_backfill_must_not_be_training_only(make_staff, make_student, solve):
    staff = [make_staff("A"), make_staff("D")]
    students = [
        make_student("G", ["A"], absence=DayPart.PM),
        make_student("Y", ["A", "D"], trainingStatus={"D": "overlap-staff"}, absence=DayPart.PM),
    ]
    held = Assignment(staffId="A", studentId="Y", session="AM", program="Primary")
    resp = solve(staff, students, assignments=[held])

    assert resp.summary.swaps == 0
    assert not any(a.staffId == "D" for a in resp.schedule.assignments)
    [diag] = resp.diagnostics
    assert diag.members[0].blocker is Blocker.TRAINING_ONLY


def test_trainee_placements_are_not_swapped(make_staff, make_student, solve, pairs):
    staff = [make_staff("T"), make_staff("D")]
    students = [
        make_student("G", ["T"], absence=DayPart.PM),
        make_student("Y", ["T", "D"], absence=DayPart.PM),
    ]
    trainee = Assignment(id="tr", staffId="T", studentId="Y", session="AM",
                         program="Primary", isTrainee=True)
    resp = solve(staff, students, assignments=[trainee])

    assert resp.summary.swaps == 0
    assert resp.schedule.get("tr") is not None
    assert pairs(resp.schedule, trainee=True) == {("T", "Y", "AM")}
    assert pairs(resp.schedule) == {("D", "Y", "AM")}
    [diag] = resp.diagnostics
    assert diag.members[0].blocker is Blocker.TRAINEE_CHANNEL


def test_swap_moves_paired_placement_as_a_unit(make_staff, make_student, solve, pairs):
    staff = [make_staff("A"), make_staff("D")]
    students = [
        make_student("G", ["A"], absence=DayPart.PM),
        make_student("P1", ["A", "D"], ratioAM="1:2", pairedWith="P2", absence=DayPart.PM),
        make_student("P2", ["A", "D"], ratioAM="1:2", pairedWith="P1", absence=DayPart.PM),
    ]
    resp = solve(staff, students)

    assert resp.success
    assert resp.summary.swaps == 1
    assert pairs(resp.schedule) == {("A", "G", "AM"), ("D", "P1", "AM"), ("D", "P2", "AM")}


def test_paired_students_mirror_across_sessions(make_staff, make_student, solve):
    staff = [make_staff("A"), make_staff("B")]
    students = [
        make_student("P1", ["A", "B"], ratioAM="1:2", ratioPM="1:2", pairedWith="P2"),
        make_student("P2", ["A", "B"], ratioAM="1:2", ratioPM="1:2", pairedWith="P1"),
    ]
    resp = solve(staff, students)

    for session in Session:
        p1 = {a.staffId for a in resp.schedule.for_student("P1", session)}
        p2 = {a.staffId for a in resp.schedule.for_student("P2", session)}
        assert p1 == p2
        assert len(p1) == 1


def test_partly_filled_gap_stays_unresolved(make_staff, make_student, solve):
    staff = [make_staff("A"), make_staff("C", absence=DayPart.AM), make_staff("D")]
    students = [
        make_student("G", ["A", "C"], ratioAM="2:1", absence=DayPart.PM),
        make_student("Y", ["A", "D"], absence=DayPart.PM),
    ]
    held = Assignment(staffId="A", studentId="Y", session="AM", program="Primary", origin="manual")
    resp = solve(staff, students, assignments=[held])

    assert resp.summary.swaps == 1
    assert resp.summary.iterations == 2
    assert not resp.summary.capReached
    [gap] = resp.summary.unresolved
    assert (gap.studentId, gap.missing) == ("G", 1)


def test_iteration_cap_is_reported_not_raised(make_staff, make_student, solve):
    staff = [make_staff("A"), make_staff("C", absence=DayPart.AM), make_staff("D")]
    students = [
        make_student("G", ["A", "C"], ratioAM="2:1", absence=DayPart.PM),
        make_student("Y", ["A", "D"], absence=DayPart.PM),
    ]
    held = Assignment(staffId="A", studentId="Y", session="AM", program="Primary", origin="manual")
    resp = solve(staff, students, assignments=[held], max_iterations=1)

    assert resp.summary.iterations == 1
    assert resp.summary.capReached
    assert resp.statusMessage == "1 slot(s) left unstaffed. Swap iteration cap reached."


def test_optimize_with_no_gaps_does_nothing(make_staff, make_student, make_roster, day):
    roster = make_roster([make_staff("A")], [make_student("G", ["A"])])
    summary = optimize(Schedule(date=day), roster, [], max_iterations=5)
    assert summary.iterations == 0
    assert not summary.capReached


@pytest.mark.parametrize("locked", [False, True])
def test_second_run_is_idempotent(swap_roster, solve, locked):
    staff, students = swap_roster
    assignments = []
    if locked:
        assignments = [Assignment(staffId="A", studentId="Y", session="AM",
                                  program="Primary", isLocked=True)]
    first = solve(staff, students, assignments=assignments)
    second = solve(staff, students, assignments=first.schedule.assignments,
                   locked_ids=first.schedule.lockedIds)

    assert second.greedyFills == 0
    assert second.summary.swaps == 0
    assert second.summary.directFills == 0
    assert second.summary.gapsFilled == 0
    assert len(second.summary.unresolved) == len(first.summary.unresolved)
    assert {(a.staffId, a.studentId) for a in second.schedule.assignments} == \
        {(a.staffId, a.studentId) for a in first.schedule.assignments}


# ---------------------------------------------------------------------------
# Invariants over generated rosters
# ---------------------------------------------------------------------------

def _generated(seed, make_staff, make_student):
    rng = random.Random(seed)
    roles = ["RBT", "RBT", "RBT", "BS", "EA", "BCBA", "Teacher"]
    programs = ["Primary", "Secondary"]

    staff = []
    for i in range(12):
        kwargs = {}
        if rng.random() < 0.15:
            kwargs["absence"] = rng.choice(list(DayPart))
        if rng.random() < 0.3:
            worked = tuple(programs)
        else:
            worked = (rng.choice(programs),)
        staff.append(make_staff(f"s{i:02d}", role=rng.choice(roles), programs=worked, **kwargs))
    staff_ids = [s.id for s in staff]

    students = []
    for i in range(9):
        team = rng.sample(staff_ids, rng.randint(1, 5))
        training = {team[0]: TrainingStatus.OVERLAP_STAFF} if rng.random() < 0.25 else {}
        students.append(make_student(
            f"c{i:02d}", team,
            program=rng.choice(programs),
            ratioAM=Ratio.TWO_TO_ONE if rng.random() < 0.2 else Ratio.ONE_TO_ONE,
            trainingStatus=training,
        ))

    shared = rng.sample(staff_ids, 4)
    for pid, partner in (("p1", "p2"), ("p2", "p1")):
        students.append(make_student(pid, shared, ratioAM="1:2", ratioPM="1:2", pairedWith=partner))
    return staff, students


@pytest.mark.parametrize("seed", range(8))
@pytest.mark.parametrize("max_iterations", [1, 3, 10])
def test_invariants_hold_on_generated_rosters(seed, max_iterations, make_staff, make_student,
                                              make_roster, solve):
    staff, students = _generated(seed, make_staff, make_student)
    roster = make_roster(staff, students)
    resp = solve(staff, students, max_iterations=max_iterations)
    schedule = resp.schedule

    assert resp.summary.iterations <= max_iterations

    by_slot = defaultdict(set)
    for a in schedule.assignments:
        by_slot[(a.staffId, a.session, a.program)].add(a.studentId)
    for (staff_id, session, _), student_ids in by_slot.items():
        if len(student_ids) == 1:
            continue
        assert len(student_ids) == 2
        first, second = sorted(student_ids)
        partner = roster.partner_of(roster.get_student(first), session)
        assert partner is not None and partner.id == second

    seen = set()
    for a in schedule.assignments:
        assert (a.staffId, a.studentId) not in seen
        seen.add((a.staffId, a.studentId))

        student = roster.get_student(a.studentId)
        assert not student.training_status_for(a.staffId).is_training_only
        assert a.staffId in student.teamIds
        assert roster.get_staff(a.staffId).role != "Teacher"

    for session in Session:
        p1 = {a.staffId for a in schedule.for_student("p1", session)}
        p2 = {a.staffId for a in schedule.for_student("p2", session)}
        assert p1 == p2


@pytest.mark.parametrize("seed", range(4))
def test_greedy_then_optimize_leaves_no_fixable_gap(seed, make_staff, make_student, make_roster, day):
    staff, students = _generated(seed, make_staff, make_student)
    roster = make_roster(staff, students)
    schedule = Schedule(date=day)
    _, gaps = greedy_pass(schedule, roster)
    first = optimize(schedule, roster, gaps, max_iterations=50)
    second = optimize(schedule, roster, first.unresolved, max_iterations=50)

    assert not first.capReached
    assert second.swaps == 0
    assert second.directFills == 0


@pytest.mark.parametrize("seed", range(6))
def test_locked_assignments_survive_a_second_solve(seed, make_staff, make_student, solve):
    staff, students = _generated(seed, make_staff, make_student)
    first = solve(staff, students)

    rng = random.Random(seed + 100)
    kept, locked = [], set()
    for a in first.schedule.assignments:
        roll = rng.random()
        if roll < 0.4:
            kept.append(a)
            locked.add(a.id)
        elif roll < 0.7:
            kept.append(a)
    expected = {a.id: (a.staffId, a.studentId, a.session) for a in kept if a.id in locked}

    second = solve(staff, students, assignments=kept, locked_ids=locked)

    for assignment_id, key in expected.items():
        found = second.schedule.get(assignment_id)
        assert found is not None
        assert (found.staffId, found.studentId, found.session) == key
        assert second.schedule.is_locked(assignment_id)


def test_filled_pair_counts_as_one_gap(make_staff, make_student, solve, pairs):
    staff = [make_staff("A"), make_staff("D")]
    students = [
        make_student("G", ["A", "D"], absence=DayPart.PM),
        make_student("P1", ["A"], ratioAM="1:2", pairedWith="P2", absence=DayPart.PM),
        make_student("P2", ["A"], ratioAM="1:2", pairedWith="P1", absence=DayPart.PM),
    ]
    held = Assignment(staffId="A", studentId="G", session="AM", program="Primary")
    resp = solve(staff, students, assignments=[held])

    assert resp.summary.swaps == 1
    assert resp.summary.gapsFilled == 1
    assert resp.summary.unresolved == []
    assert pairs(resp.schedule) == {("A", "P1", "AM"), ("A", "P2", "AM"), ("D", "G", "AM")}
