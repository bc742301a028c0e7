from app.db.repo.enrollments_repo import EnrollmentsRepo
from app.db.repo.promo_repo import PromoRepo

__all__ = [
    "EnrollmentsRepo",
    "PromoRepo",
]
