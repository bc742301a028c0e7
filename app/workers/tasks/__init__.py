from app.workers.tasks.promo_maintenance import run_promo_campaign_status_rollover

__all__ = [
    "run_promo_campaign_status_rollover",
]
