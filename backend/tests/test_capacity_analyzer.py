from examdesk.scheduling.capacity import CapacityAnalyzer, recommended_proctors
from examdesk.scheduling.policy import SchedulePolicy
from examdesk.scheduling.records import ProctorAssignmentRecord, ScheduleSnapshot
from fakes import exam, room


def analyze(exams, counts, assignments=(), policy=None):
    snapshot = ScheduleSnapshot(exams=tuple(exams), assignments=tuple(assignments), registration_counts=counts)
    return CapacityAnalyzer(snapshot, policy or SchedulePolicy()).analyze()


def test_recommended_proctors_rounds_up():
    assert recommended_proctors(0, 30) == 0
    assert recommended_proctors(1, 30) == 1
    assert recommended_proctors(30, 30) == 1
    assert recommended_proctors(61, 30) == 3


def test_overcapacity_reports_overflow():
    findings = analyze([exam(1, room=room(1, capacity=30), max_students=40)], {1: 35}, assignments=[
        ProctorAssignmentRecord(exam_id=1, proctor_id=9),
        ProctorAssignmentRecord(exam_id=1, proctor_id=10),
    ])

    assert [finding.type for finding in findings] == ["overcapacity"]
    details = findings[0].details
    assert details["registered"] == 35
    assert details["capacity"] == 30
    assert details["overflow"] == 5
    assert findings[0].severity == "warning"


def test_full_room_is_not_overcapacity():
    findings = analyze(
        [exam(1, room=room(1, capacity=30))],
        {1: 30},
        assignments=[ProctorAssignmentRecord(exam_id=1, proctor_id=9)],
    )

    assert findings == []


def test_overcapacity_tolerance_is_configurable():
    exams = [exam(1, room=room(1, capacity=30), max_students=40)]
    assignments = [ProctorAssignmentRecord(exam_id=1, proctor_id=9), ProctorAssignmentRecord(exam_id=1, proctor_id=10)]

    assert analyze(exams, {1: 32}, assignments, SchedulePolicy(overcapacity_tolerance=2)) == []
    assert len(analyze(exams, {1: 33}, assignments, SchedulePolicy(overcapacity_tolerance=2))) == 1


def test_understaffed_exam_gets_recommendation():
    findings = analyze(
        [exam(1, room=room(1, capacity=100), max_students=100)],
        {1: 61},
        assignments=[ProctorAssignmentRecord(exam_id=1, proctor_id=9)],
    )

    assert [finding.type for finding in findings] == ["understaffed"]
    assert findings[0].details == {
        "students": 61,
        "current_proctors": 1,
        "recommended_proctors": 3,
        "students_per_proctor": 30,
    }


def test_ratio_comes_from_policy():
    findings = analyze(
        [exam(1, room=room(1, capacity=100), max_students=100)],
        {1: 61},
        assignments=[ProctorAssignmentRecord(exam_id=1, proctor_id=9)],
        policy=SchedulePolicy(students_per_proctor=100),
    )

    assert findings == []


def test_empty_and_roomless_exams_need_no_warnings():
    findings = analyze([exam(1, room=room(1)), exam(2, max_students=200)], {2: 0})

    assert findings == []


def test_cancelled_exams_are_not_checked():
    findings = analyze([exam(1, room=room(1, capacity=10), status="cancelled")], {1: 50})

    assert findings == []
