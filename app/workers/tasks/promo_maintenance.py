from __future__ import annotations

from datetime import datetime, timezone

import structlog

from app.db.repo.promo_repo import PromoRepo
from app.db.session import SessionLocal
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


async def run_promo_campaign_status_rollover_async(
    *, now_utc: datetime | None = None
) -> dict[str, int]:
    """Keeps the persisted status in step with each code's date window.

    Evaluation derives status from dates on its own; this only tidies what admins see.
    """
    now_utc = now_utc or datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        expired_count = await PromoRepo.expire_codes_past_end(session, now_utc=now_utc)
        activated_count = await PromoRepo.activate_started_codes(session, now_utc=now_utc)

    result = {
        "expired_codes": expired_count,
        "activated_codes": activated_count,
        "updated_codes": expired_count + activated_count,
    }
    logger.info("promo_campaign_status_rollover_finished", **result)
    return result


@celery_app.task(name="app.workers.tasks.promo_maintenance.run_promo_campaign_status_rollover")
def run_promo_campaign_status_rollover() -> dict[str, int]:
    return run_async_job(run_promo_campaign_status_rollover_async())


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "promo-campaign-status-rollover-every-10-minutes": {
            "task": "app.workers.tasks.promo_maintenance.run_promo_campaign_status_rollover",
            "schedule": 600.0,
            "options": {"queue": "q_normal"},
        },
    }
)
