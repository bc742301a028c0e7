from app.commerce.enrollments import EnrollmentService
from app.commerce.promo import PromoService

__all__ = [
    "EnrollmentService",
    "PromoService",
]
