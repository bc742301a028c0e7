from app.commerce.enrollments.gate import assess
from app.commerce.enrollments.service import EnrollmentService
from app.commerce.enrollments.transitions import lookup_transition, transition
from app.commerce.enrollments.types import EnrollmentEvent, EnrollmentStatus, TransitionError

__all__ = [
    "EnrollmentEvent",
    "EnrollmentService",
    "EnrollmentStatus",
    "TransitionError",
    "assess",
    "lookup_transition",
    "transition",
]
