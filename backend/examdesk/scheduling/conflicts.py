from collections import defaultdict
from typing import Dict, List, Tuple

from examdesk.scheduling.intervals import Occupancy, overlapping_pairs
from examdesk.scheduling.records import ExamRecord, ProctorAssignmentRecord, ScheduleSnapshot
from examdesk.schemas.schedule import ConflictFinding, ExamRef


def exam_ref(exam: ExamRecord, proctor_role: str | None = None) -> ExamRef:
    return ExamRef(
        exam_id=exam.exam_id,
        title=exam.title,
        subject_code=exam.subject_code,
        subject_name=exam.subject_name,
        exam_date=exam.exam_date,
        start_time=exam.start_time,
        end_time=exam.end_time,
        room_name=exam.room.name if exam.room else None,
        proctor_role=proctor_role,
    )


def format_span(exam: ExamRecord) -> str:
    return f"{exam.start_time:%H:%M}-{exam.end_time:%H:%M}"


def _pair_key(exam_date, resource_id: int, first: Occupancy, second: Occupancy) -> Tuple:
    return (
        exam_date,
        resource_id,
        first.start_time,
        first.exam_id,
        second.start_time,
        second.exam_id,
    )


class ConflictAnalyzer:
    """Detects room and proctor double-bookings inside one schedule snapshot."""

    def __init__(self, snapshot: ScheduleSnapshot):
        self.snapshot = snapshot
        self.exams: Dict[int, ExamRecord] = {exam.exam_id: exam for exam in snapshot.active_exams()}

    def detect_conflicts(self) -> List[ConflictFinding]:
        return self.room_conflicts() + self.proctor_conflicts()

    def room_conflicts(self) -> List[ConflictFinding]:
        # Bucket by (room, day); online or unassigned exams have no room to clash over.
        groups: Dict[Tuple, List[Occupancy]] = defaultdict(list)
        for exam in self.exams.values():
            if exam.room is None:
                continue
            groups[(exam.room.room_id, exam.exam_date)].append(
                Occupancy(exam.room.room_id, exam.exam_date, exam.start_time, exam.end_time, exam.exam_id)
            )

        keyed: List[Tuple[Tuple, ConflictFinding]] = []
        for (room_id, exam_date), occupancies in groups.items():
            for first, second in overlapping_pairs(occupancies):
                exam_a = self.exams[first.exam_id]
                exam_b = self.exams[second.exam_id]
                room = exam_a.room
                keyed.append((
                    _pair_key(exam_date, room_id, first, second),
                    ConflictFinding(
                        id=f"room-{room_id}-{exam_date.isoformat()}-{exam_a.exam_id}-{exam_b.exam_id}",
                        type="room_conflict",
                        severity="critical",
                        title=f"Room conflict: {room.name}",
                        description=(
                            f"Room {room.name} is double-booked on {exam_date.isoformat()}: "
                            f"'{exam_a.title}' ({format_span(exam_a)}) overlaps "
                            f"'{exam_b.title}' ({format_span(exam_b)})"
                        ),
                        exam_ids=[exam_a.exam_id, exam_b.exam_id],
                        exams=[exam_ref(exam_a), exam_ref(exam_b)],
                        details={
                            "room_id": room_id,
                            "room_name": room.name,
                            "date": exam_date.isoformat(),
                        },
                    ),
                ))
        keyed.sort(key=lambda item: item[0])
        return [finding for _, finding in keyed]

    def proctor_conflicts(self) -> List[ConflictFinding]:
        groups: Dict[Tuple, List[Occupancy]] = defaultdict(list)
        assignment_index: Dict[Tuple[int, int], ProctorAssignmentRecord] = {}
        for assignment in self.snapshot.assignments:
            exam = self.exams.get(assignment.exam_id)
            if exam is None:
                continue
            assignment_index[(assignment.proctor_id, exam.exam_id)] = assignment
            groups[(assignment.proctor_id, exam.exam_date)].append(
                Occupancy(assignment.proctor_id, exam.exam_date, exam.start_time, exam.end_time, exam.exam_id)
            )

        keyed: List[Tuple[Tuple, ConflictFinding]] = []
        for (proctor_id, exam_date), occupancies in groups.items():
            for first, second in overlapping_pairs(occupancies):
                exam_a = self.exams[first.exam_id]
                exam_b = self.exams[second.exam_id]
                assignment_a = assignment_index[(proctor_id, exam_a.exam_id)]
                assignment_b = assignment_index[(proctor_id, exam_b.exam_id)]
                proctor_name = assignment_a.proctor_name or f"Proctor {proctor_id}"
                keyed.append((
                    _pair_key(exam_date, proctor_id, first, second),
                    ConflictFinding(
                        id=f"proctor-{proctor_id}-{exam_date.isoformat()}-{exam_a.exam_id}-{exam_b.exam_id}",
                        type="proctor_conflict",
                        severity="critical",
                        title=f"Proctor conflict: {proctor_name}",
                        description=(
                            f"{proctor_name} is assigned to overlapping exams on {exam_date.isoformat()}: "
                            f"'{exam_a.title}' ({format_span(exam_a)}) and "
                            f"'{exam_b.title}' ({format_span(exam_b)})"
                        ),
                        exam_ids=[exam_a.exam_id, exam_b.exam_id],
                        exams=[
                            exam_ref(exam_a, proctor_role=assignment_a.role),
                            exam_ref(exam_b, proctor_role=assignment_b.role),
                        ],
                        details={
                            "proctor_id": proctor_id,
                            "proctor_name": proctor_name,
                            "date": exam_date.isoformat(),
                        },
                    ),
                ))
        keyed.sort(key=lambda item: item[0])
        return [finding for _, finding in keyed]
