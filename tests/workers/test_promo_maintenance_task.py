from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from app.workers.tasks import promo_maintenance


def test_run_promo_campaign_status_rollover_task_wrapper(monkeypatch) -> None:
    async def fake_async() -> dict[str, int]:
        return {
            "expired_codes": 2,
            "activated_codes": 1,
            "updated_codes": 3,
        }

    monkeypatch.setattr(promo_maintenance, "run_promo_campaign_status_rollover_async", fake_async)

    result = promo_maintenance.run_promo_campaign_status_rollover()
    assert result["updated_codes"] == 3


@pytest.mark.asyncio
async def test_status_rollover_expires_and_activates_codes(monkeypatch) -> None:
    now_utc = datetime(2026, 3, 10, 17, 0, tzinfo=timezone.utc)
    seen: list[tuple[str, datetime]] = []

    class _FakeBegin:
        async def __aenter__(self):
            return "session"

        async def __aexit__(self, exc_type, exc, tb) -> bool:
            return False

    async def _fake_expire(session, *, now_utc):
        assert session == "session"
        seen.append(("expire", now_utc))
        return 4

    async def _fake_activate(session, *, now_utc):
        assert session == "session"
        seen.append(("activate", now_utc))
        return 2

    monkeypatch.setattr(promo_maintenance, "SessionLocal", SimpleNamespace(begin=_FakeBegin))
    monkeypatch.setattr(promo_maintenance.PromoRepo, "expire_codes_past_end", _fake_expire)
    monkeypatch.setattr(promo_maintenance.PromoRepo, "activate_started_codes", _fake_activate)

    result = await promo_maintenance.run_promo_campaign_status_rollover_async(now_utc=now_utc)

    assert result == {"expired_codes": 4, "activated_codes": 2, "updated_codes": 6}
    assert seen == [("expire", now_utc), ("activate", now_utc)]


def test_status_rollover_is_on_beat_schedule() -> None:
    schedule = promo_maintenance.celery_app.conf.beat_schedule
    entry = schedule["promo-campaign-status-rollover-every-10-minutes"]

    assert entry["task"] == "app.workers.tasks.promo_maintenance.run_promo_campaign_status_rollover"
    assert entry["schedule"] == 600.0
