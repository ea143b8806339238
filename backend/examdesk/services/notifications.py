from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from examdesk.models.notification import Notification
from examdesk.models.user import User, UserRole
from examdesk.scheduling.records import PersonRecord

logger = logging.getLogger(__name__)

_ACTION_TITLES = {
    "students_assigned": "Students Assigned",
    "proctors_assigned": "Proctors Assigned",
    "student_removed": "Student Removed",
    "proctor_removed": "Proctor Removed",
}


class Notifier(Protocol):
    def notify(self, resource_type: str, action: str, payload: dict, actor: PersonRecord | None) -> None: ...


def describe_event(resource_type: str, action: str, payload: dict, actor: PersonRecord | None) -> tuple[str, str]:
    title = _ACTION_TITLES.get(action, f"{resource_type.title()} {action.replace('_', ' ')}")
    who = actor.full_name if actor is not None else "The system"
    exam = payload.get("exam_title") or f"exam {payload.get('exam_id')}"
    if action == "students_assigned":
        message = f"{who} assigned {payload.get('created_count', 0)} student(s) to {exam}."
    elif action == "proctors_assigned":
        message = f"{who} assigned {payload.get('created_count', 0)} proctor(s) to {exam}."
    elif action == "student_removed":
        message = f"{who} removed student {payload.get('student_id')} from {exam}."
    elif action == "proctor_removed":
        message = f"{who} removed proctor {payload.get('proctor_id')} from {exam}."
    else:
        message = f"{who} performed {action} on {resource_type}."
    return title, message


class LoggingNotifier:
    def notify(self, resource_type: str, action: str, payload: dict, actor: PersonRecord | None) -> None:
        _, message = describe_event(resource_type, action, payload, actor)
        logger.info("[%s.%s] %s", resource_type, action, message)


class DatabaseNotifier:
    """Stores a notification for every active admin except the actor.

    Runs in its own session so a delivery failure can never touch the
    transaction that produced the event.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def notify(self, resource_type: str, action: str, payload: dict, actor: PersonRecord | None) -> None:
        title, message = describe_event(resource_type, action, payload, actor)
        db = self._session_factory()
        try:
            stmt = select(User.id).where(User.role == UserRole.admin, User.is_active.is_(True))
            if actor is not None:
                stmt = stmt.where(User.id != actor.user_id)
            admin_ids = list(db.execute(stmt).scalars())
            for admin_id in admin_ids:
                db.add(
                    Notification(
                        user_id=admin_id,
                        title=title,
                        message=message,
                        resource_type=resource_type,
                        action=action,
                        payload=payload,
                    )
                )
            db.commit()
            logger.debug("Stored %d notification(s) for %s.%s", len(admin_ids), resource_type, action)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def dispatch_notification(
    notifier: Notifier | None,
    resource_type: str,
    action: str,
    payload: dict,
    actor: PersonRecord | None = None,
) -> bool:
    """Fire-and-forget delivery. Failures are logged, never raised."""
    if notifier is None:
        return False
    try:
        notifier.notify(resource_type, action, payload, actor)
    except Exception:
        logger.warning("Notification dispatch failed for %s.%s", resource_type, action, exc_info=True)
        return False
    return True
