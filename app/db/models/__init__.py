from app.db.models.enrollments import Enrollment
from app.db.models.promo_codes import PromoCode
from app.db.models.promo_redemptions import PromoRedemption

__all__ = [
    "Enrollment",
    "PromoCode",
    "PromoRedemption",
]
