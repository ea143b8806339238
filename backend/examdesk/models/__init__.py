from examdesk.models.exam import Exam, ExamMethod, ExamStatus  # noqa: F401
from examdesk.models.exam_proctor import ExamProctor, ProctorRole  # noqa: F401
from examdesk.models.notification import Notification  # noqa: F401
from examdesk.models.registration import (  # noqa: F401
    ACTIVE_REGISTRATION_STATUSES,
    Registration,
    RegistrationStatus,
)
from examdesk.models.room import Room  # noqa: F401
from examdesk.models.subject import Subject  # noqa: F401
from examdesk.models.user import User, UserRole  # noqa: F401
