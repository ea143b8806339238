from datetime import date

from fastapi import APIRouter, Depends, Query

from examdesk.api.deps import get_notifier, get_schedule_policy, get_schedule_store, require_roles
from examdesk.models.user import User, UserRole
from examdesk.repositories.sqlalchemy import SqlAlchemyScheduleStore, user_to_record
from examdesk.scheduling.policy import SchedulePolicy
from examdesk.schemas.schedule import (
    AssignmentResult,
    AssignProctorsRequest,
    AssignStudentsRequest,
    ConflictReport,
    ProctorExamOut,
    ScheduleOverview,
    SeverityFilter,
    UnassignedOut,
)
from examdesk.services.assignment_service import AssignmentService
from examdesk.services.notifications import Notifier
from examdesk.services.schedule_service import ScheduleService

router = APIRouter()


@router.get("/overview", response_model=ScheduleOverview)
def get_schedule_overview(
    start_date: date | None = None,
    end_date: date | None = None,
    room_id: int | None = Query(default=None, gt=0),
    subject_code: str | None = Query(default=None, max_length=20),
    include_stats: bool = True,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.teacher, UserRole.student)),
    store: SqlAlchemyScheduleStore = Depends(get_schedule_store),
    policy: SchedulePolicy = Depends(get_schedule_policy),
) -> ScheduleOverview:
    return ScheduleService(store, policy).get_schedule_overview(
        start_date,
        end_date,
        room_id=room_id,
        subject_code=subject_code or None,
        include_stats=include_stats,
    )


@router.get("/conflicts", response_model=ConflictReport)
def get_schedule_conflicts(
    start_date: date | None = None,
    end_date: date | None = None,
    severity: SeverityFilter = "all",
    current_user: User = Depends(require_roles(UserRole.admin)),
    store: SqlAlchemyScheduleStore = Depends(get_schedule_store),
    policy: SchedulePolicy = Depends(get_schedule_policy),
) -> ConflictReport:
    return ScheduleService(store, policy).get_schedule_conflicts(start_date, end_date, severity)


@router.get("/unassigned", response_model=UnassignedOut)
def get_unassigned(
    current_user: User = Depends(require_roles(UserRole.admin)),
    store: SqlAlchemyScheduleStore = Depends(get_schedule_store),
    policy: SchedulePolicy = Depends(get_schedule_policy),
) -> UnassignedOut:
    return ScheduleService(store, policy).get_unassigned(today=date.today())


@router.post("/assign-students", response_model=AssignmentResult)
def assign_students(
    payload: AssignStudentsRequest,
    current_user: User = Depends(require_roles(UserRole.admin)),
    store: SqlAlchemyScheduleStore = Depends(get_schedule_store),
    notifier: Notifier = Depends(get_notifier),
) -> AssignmentResult:
    return AssignmentService(store, notifier).assign_students(
        payload.exam_id,
        payload.student_ids,
        registration_status=payload.registration_status,
        actor=user_to_record(current_user),
    )


@router.post("/assign-proctors", response_model=AssignmentResult)
def assign_proctors(
    payload: AssignProctorsRequest,
    current_user: User = Depends(require_roles(UserRole.admin)),
    store: SqlAlchemyScheduleStore = Depends(get_schedule_store),
    notifier: Notifier = Depends(get_notifier),
) -> AssignmentResult:
    return AssignmentService(store, notifier).assign_proctors(
        payload.exam_id,
        payload.proctor_assignments,
        actor=user_to_record(current_user),
    )


@router.delete("/exams/{exam_id}/students/{student_id}")
def remove_student(
    exam_id: int,
    student_id: int,
    current_user: User = Depends(require_roles(UserRole.admin)),
    store: SqlAlchemyScheduleStore = Depends(get_schedule_store),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    AssignmentService(store, notifier).remove_student(exam_id, student_id, actor=user_to_record(current_user))
    return {"message": f"Student {student_id} removed from exam {exam_id}"}


@router.delete("/exams/{exam_id}/proctors/{proctor_id}")
def remove_proctor(
    exam_id: int,
    proctor_id: int,
    current_user: User = Depends(require_roles(UserRole.admin)),
    store: SqlAlchemyScheduleStore = Depends(get_schedule_store),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    AssignmentService(store, notifier).remove_proctor(exam_id, proctor_id, actor=user_to_record(current_user))
    return {"message": f"Proctor {proctor_id} removed from exam {exam_id}"}


@router.get("/my-proctor-exams", response_model=list[ProctorExamOut])
def get_my_proctor_exams(
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    current_user: User = Depends(require_roles(UserRole.teacher)),
    store: SqlAlchemyScheduleStore = Depends(get_schedule_store),
    policy: SchedulePolicy = Depends(get_schedule_policy),
) -> list[ProctorExamOut]:
    return ScheduleService(store, policy).get_proctor_exams(
        current_user.id,
        today=date.today(),
        status=None if status in (None, "", "all") else status,
        date_from=start_date,
        date_to=end_date,
    )
