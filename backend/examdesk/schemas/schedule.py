from __future__ import annotations

from datetime import date, time
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

Severity = Literal["critical", "warning", "info"]
SeverityFilter = Literal["all", "critical", "warning", "info"]
FindingType = Literal[
    "room_conflict",
    "proctor_conflict",
    "overcapacity",
    "understaffed",
    "large_gap",
    "low_utilization",
]

SEVERITY_ORDER: tuple[Severity, ...] = ("critical", "warning", "info")


class ExamRef(BaseModel):
    exam_id: int
    title: str
    subject_code: str
    subject_name: str | None = None
    exam_date: date
    start_time: time
    end_time: time
    room_name: str | None = None
    proctor_role: str | None = None


class ConflictFinding(BaseModel):
    id: str
    type: FindingType
    severity: Severity
    title: str
    description: str
    exam_ids: list[int]
    exams: list[ExamRef] = Field(default_factory=list)
    details: dict = Field(default_factory=dict)


class ConflictSummary(BaseModel):
    total_conflicts: int
    critical_count: int
    warning_count: int
    info_count: int
    exams_analyzed: int


class ConflictReport(BaseModel):
    date_from: date | None = None
    date_to: date | None = None
    severity: SeverityFilter = "all"
    findings: list[ConflictFinding]
    summary: ConflictSummary


class ScheduleStatistics(BaseModel):
    total_exams: int
    exams_with_students: int
    exams_with_proctors: int
    exams_needing_students: int
    exams_needing_proctors: int
    total_students_registered: int
    total_proctors_assigned: int
    completion_percentage: int


class ExamOccupancy(BaseModel):
    exam_id: int
    title: str
    subject_code: str
    subject_name: str | None = None
    exam_date: date
    start_time: time
    end_time: time
    status: str
    method: str
    max_students: int
    room_id: int | None = None
    room_name: str | None = None
    room_capacity: int | None = None
    registration_count: int
    proctor_count: int
    capacity_percentage: int
    is_fully_booked: bool
    needs_proctors: bool


class ScheduleOverview(BaseModel):
    count: int
    exams: list[ExamOccupancy]
    statistics: ScheduleStatistics | None = None


class PersonOut(BaseModel):
    user_id: int
    full_name: str
    email: str


class UnassignedOut(BaseModel):
    unregistered_students: list[PersonOut]
    unassigned_proctors: list[PersonOut]


class ProctorExamOut(BaseModel):
    exam_id: int
    title: str
    subject_code: str
    subject_name: str | None = None
    exam_date: date
    start_time: time
    end_time: time
    duration_minutes: int | None = None
    room_name: str | None = None
    room_capacity: int | None = None
    registered_students: int
    max_students: int
    proctor_role: str
    calendar_status: Literal["upcoming", "today", "completed"]
    main_proctor: str | None = None
    other_proctors: list[str]
    exam_method: str


class AssignStudentsRequest(BaseModel):
    exam_id: int = Field(gt=0)
    student_ids: list[int] = Field(min_length=1, max_length=1000)
    registration_status: Literal["pending", "approved"] = "approved"

    @field_validator("student_ids")
    @classmethod
    def validate_student_ids(cls, value: list[int]) -> list[int]:
        if any(item <= 0 for item in value):
            raise ValueError("Student ids must be positive integers")
        return value


class ProctorAssignmentIn(BaseModel):
    proctor_id: int = Field(gt=0)
    role: Literal["main", "assistant"] = "assistant"
    notes: str | None = Field(default=None, max_length=500)


class AssignProctorsRequest(BaseModel):
    exam_id: int = Field(gt=0)
    proctor_assignments: list[ProctorAssignmentIn] = Field(min_length=1, max_length=50)

    @model_validator(mode="after")
    def validate_single_main(self) -> "AssignProctorsRequest":
        mains = {item.proctor_id for item in self.proctor_assignments if item.role == "main"}
        if len(mains) > 1:
            raise ValueError("At most one main proctor can be assigned per request")
        return self


class AssignmentResult(BaseModel):
    exam_id: int
    created_count: int
    already_assigned_count: int
    total_requested: int
    message: str
