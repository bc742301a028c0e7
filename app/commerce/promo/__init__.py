from app.commerce.promo.rules import effective_status, evaluate_promo_code
from app.commerce.promo.service import PromoService
from app.commerce.promo.stacking import apply_promo_discount

__all__ = [
    "PromoService",
    "apply_promo_discount",
    "effective_status",
    "evaluate_promo_code",
]
