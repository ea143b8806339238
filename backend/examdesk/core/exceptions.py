class AppError(Exception):
    """Base class for all application exceptions."""

    kind = "app_error"

    def __init__(self, message: str, status_code: int = 500, details: dict = None, kind: str | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if kind is not None:
            self.kind = kind
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationError(AppError):
    """Raised when a request is malformed (missing ids, empty batch, bad range)."""

    kind = "validation_error"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppError):
    """Raised when a referenced exam, room, proctor or student does not exist."""

    kind = "not_found"

    def __init__(self, resource_type: str, resource_id, details: dict = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404, details=details)


class ConflictError(AppError):
    """Raised when an assignment would double-book a resource or break capacity."""

    kind = "conflict"

    def __init__(self, message: str, details: dict = None, kind: str | None = None):
        super().__init__(message, status_code=409, details=details, kind=kind)


class CapacityExceededError(ConflictError):
    kind = "capacity_exceeded"

    def __init__(self, exam_id: int, requested: int, available: int):
        self.exam_id = exam_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Exam {exam_id} has only {available} free seat(s); cannot register {requested} student(s)",
            details={"exam_id": exam_id, "requested": requested, "available_slots": available},
        )


class ProctorConflictError(ConflictError):
    kind = "proctor_conflict"

    def __init__(self, exam_id: int, conflicts: list[dict]):
        self.exam_id = exam_id
        self.conflicts = conflicts
        clashes = "; ".join(
            f"{item['proctor_name']} already proctors "
            + ", ".join(f"'{exam['title']}' ({exam['start_time']}-{exam['end_time']})" for exam in item["conflicting_exams"])
            for item in conflicts
        )
        super().__init__(
            f"Proctor schedule conflict for exam {exam_id}: {clashes}",
            details={"exam_id": exam_id, "conflicts": conflicts},
        )


class TransientStoreError(AppError):
    """Raised when the data store fails in a way the caller may retry."""

    kind = "transient_store_error"

    def __init__(self, message: str = "The data store is temporarily unavailable"):
        super().__init__(message, status_code=503)
