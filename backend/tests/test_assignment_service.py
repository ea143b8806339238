from types import SimpleNamespace

import pytest

from examdesk.core.exceptions import (
    CapacityExceededError,
    ConflictError,
    NotFoundError,
    ProctorConflictError,
    TransientStoreError,
    ValidationError,
)
from examdesk.services.assignment_service import AssignmentService, normalize_ids
from fakes import InMemoryScheduleStore, RecordingNotifier, exam, person, room


def proctor_request(proctor_id, role="assistant", notes=None):
    return SimpleNamespace(proctor_id=proctor_id, role=role, notes=notes)


@pytest.fixture()
def store():
    store = InMemoryScheduleStore()
    store.add_person(person(1, "admin", name="Ada Admin"))
    for student_id in range(100, 130):
        store.add_person(person(student_id, "student"))
    store.add_person(person(7, "teacher", name="Dr. Nguyen"))
    store.add_person(person(8, "teacher", name="Dr. Okafor"))
    return store


def test_normalize_ids_dedupes_and_validates():
    assert normalize_ids([3, 1, 3, 2], label="Student") == [3, 1, 2]
    with pytest.raises(ValidationError):
        normalize_ids([], label="Student")
    with pytest.raises(ValidationError):
        normalize_ids([1, 0], label="Student")
    with pytest.raises(ValidationError):
        normalize_ids([True], label="Student")


def test_assign_students_creates_registrations_and_notifies(store):
    store.add_exam(exam(4, max_students=20, room=room(1)))
    notifier = RecordingNotifier()

    result = AssignmentService(store, notifier).assign_students(4, [100, 101, 101], actor=store.people[1])

    assert result.created_count == 2
    assert result.already_assigned_count == 0
    assert result.total_requested == 2
    assert store.count_active_registrations(4) == 2
    assert store.locked_exam_ids == [4]
    resource_type, action, payload, actor = notifier.events[0]
    assert (resource_type, action) == ("schedule", "students_assigned")
    assert payload["created_count"] == 2
    assert actor.user_id == 1


def test_full_exam_rejects_extra_student(store):
    store.add_exam(exam(4, max_students=20))
    for student_id in range(100, 120):
        store.register(4, student_id)

    with pytest.raises(CapacityExceededError) as exc_info:
        AssignmentService(store).assign_students(4, [120])

    assert exc_info.value.status_code == 409
    assert exc_info.value.details["available_slots"] == 0
    assert store.count_active_registrations(4) == 20
    assert store.rollbacks == 1


def test_batch_larger_than_free_seats_inserts_nothing(store):
    store.add_exam(exam(4, max_students=3))
    store.register(4, 100)

    with pytest.raises(CapacityExceededError) as exc_info:
        AssignmentService(store).assign_students(4, [101, 102, 103])

    assert exc_info.value.requested == 3
    assert exc_info.value.available == 2
    assert store.count_active_registrations(4) == 1


def test_resubmitting_registered_students_is_idempotent(store):
    store.add_exam(exam(4, max_students=2))
    service = AssignmentService(store)
    service.assign_students(4, [100, 101])

    result = service.assign_students(4, [100, 101])

    assert result.created_count == 0
    assert result.already_assigned_count == 2
    assert store.count_active_registrations(4) == 2


def test_mixed_batch_only_needs_seats_for_new_students(store):
    store.add_exam(exam(4, max_students=2))
    store.register(4, 100)

    result = AssignmentService(store).assign_students(4, [100, 101])

    assert result.created_count == 1
    assert result.already_assigned_count == 1
    assert result.total_requested == 2
    assert store.count_active_registrations(4) == 2

    with pytest.raises(CapacityExceededError) as exc_info:
        AssignmentService(store).assign_students(4, [100, 101, 102])

    assert exc_info.value.requested == 1
    assert exc_info.value.available == 0
    assert store.count_active_registrations(4) == 2


def test_withdrawn_student_can_be_assigned_again(store):
    store.add_exam(exam(4, max_students=1))
    store.register(4, 100, status="cancelled")

    result = AssignmentService(store).assign_students(4, [100], registration_status="pending")

    assert result.created_count == 1
    assert [row.status for row in store.find_registrations(4)] == ["pending"]


def test_unknown_exam_and_student_are_not_found(store):
    store.add_exam(exam(4))
    service = AssignmentService(store)

    with pytest.raises(NotFoundError):
        service.assign_students(99, [100])
    with pytest.raises(NotFoundError) as exc_info:
        service.assign_students(4, [100, 555])
    assert exc_info.value.details["missing_ids"] == [555]
    # a teacher id is not a student
    with pytest.raises(NotFoundError):
        service.assign_students(4, [7])
    assert store.count_active_registrations(4) == 0


def test_cancelled_exam_cannot_take_assignments(store):
    store.add_exam(exam(4, status="cancelled"))

    with pytest.raises(ConflictError) as exc_info:
        AssignmentService(store).assign_students(4, [100])

    assert exc_info.value.kind == "exam_cancelled"


def test_proctor_double_booking_names_the_existing_exam(store):
    store.add_exam(exam(5, "09:00", "11:00", title="E5"))
    store.add_exam(exam(6, "10:00", "12:00", title="E6"))
    store.assign(5, 7)

    with pytest.raises(ProctorConflictError) as exc_info:
        AssignmentService(store).assign_proctors(6, [proctor_request(7)])

    error = exc_info.value
    assert error.kind == "proctor_conflict"
    assert "E5" in error.message
    assert "Dr. Nguyen" in error.message
    conflict = error.details["conflicts"][0]
    assert conflict["proctor_id"] == 7
    assert conflict["conflicting_exams"][0] == {
        "exam_id": 5,
        "title": "E5",
        "exam_date": "2026-01-12",
        "start_time": "09:00",
        "end_time": "11:00",
    }
    assert store.find_assignments_for_exams([6]) == []


def test_proctor_rows_are_locked_before_bookings_are_read(store):
    store.add_exam(exam(6))

    AssignmentService(store).assign_proctors(6, [proctor_request(8), proctor_request(7)])

    assert store.locked_exam_ids == [6]
    assert store.locked_user_ids == [7, 8]


def test_student_assignment_does_not_lock_student_rows(store):
    store.add_exam(exam(4))

    AssignmentService(store).assign_students(4, [100])

    assert store.locked_user_ids == []


def test_proctor_batch_is_all_or_nothing(store):
    store.add_exam(exam(5, "09:00", "11:00"))
    store.add_exam(exam(6, "10:00", "12:00"))
    store.assign(5, 7)

    with pytest.raises(ProctorConflictError):
        AssignmentService(store).assign_proctors(6, [proctor_request(8, role="main"), proctor_request(7)])

    assert store.find_assignments_for_exams([6]) == []


def test_back_to_back_and_cancelled_bookings_are_not_conflicts(store):
    store.add_exam(exam(5, "09:00", "11:00"))
    store.add_exam(exam(6, "11:00", "13:00"))
    store.add_exam(exam(7, "11:30", "12:30", status="cancelled"))
    store.assign(5, 7)
    store.assign(7, 7)

    result = AssignmentService(store).assign_proctors(6, [proctor_request(7, role="main", notes="Lead")])

    assert result.created_count == 1
    created = store.find_assignments_for_exams([6])[0]
    assert created.role == "main"
    assert created.notes == "Lead"
    assert created.proctor_name == "Dr. Nguyen"


def test_reassigning_a_proctor_counts_as_already_assigned(store):
    store.add_exam(exam(6))
    service = AssignmentService(store)
    service.assign_proctors(6, [proctor_request(7)])

    result = service.assign_proctors(6, [proctor_request(7), proctor_request(8), proctor_request(8)])

    assert result.created_count == 1
    assert result.already_assigned_count == 1
    assert result.total_requested == 2


def test_students_are_not_proctors(store):
    store.add_exam(exam(6))

    with pytest.raises(NotFoundError):
        AssignmentService(store).assign_proctors(6, [proctor_request(100)])


def test_failing_notifier_does_not_undo_the_assignment(store):
    store.add_exam(exam(4))

    result = AssignmentService(store, RecordingNotifier(fail=True)).assign_students(4, [100])

    assert result.created_count == 1
    assert store.commits == 1
    assert store.count_active_registrations(4) == 1


def test_commit_failure_surfaces_as_transient_error(store):
    store.add_exam(exam(4))
    store.fail_on_commit = True
    notifier = RecordingNotifier()

    with pytest.raises(TransientStoreError):
        AssignmentService(store, notifier).assign_students(4, [100])

    assert store.count_active_registrations(4) == 0
    assert notifier.events == []


def test_remove_student_and_proctor(store):
    store.add_exam(exam(4))
    store.register(4, 100)
    store.assign(4, 7)
    notifier = RecordingNotifier()
    service = AssignmentService(store, notifier)

    service.remove_student(4, 100)
    service.remove_proctor(4, 7)

    assert store.find_registrations(4) == []
    assert store.find_assignments_for_exams([4]) == []
    assert [event[1] for event in notifier.events] == ["student_removed", "proctor_removed"]

    with pytest.raises(NotFoundError):
        service.remove_student(4, 100)
    with pytest.raises(NotFoundError):
        service.remove_proctor(4, 7)
