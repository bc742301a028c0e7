from __future__ import annotations

from collections.abc import Collection
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.promo_codes import PromoCode
from app.db.models.promo_redemptions import PromoRedemption


class PromoRepo:
    @staticmethod
    async def get_code_by_code(session: AsyncSession, code: str) -> PromoCode | None:
        stmt = select(PromoCode).where(PromoCode.code == code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_code_by_code_for_update(session: AsyncSession, code: str) -> PromoCode | None:
        stmt = select(PromoCode).where(PromoCode.code == code).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_code_by_id(session: AsyncSession, promo_code_id: int) -> PromoCode | None:
        return await session.get(PromoCode, promo_code_id)

    @staticmethod
    async def count_user_redemptions(
        session: AsyncSession,
        *,
        promo_code_id: int,
        user_id: str,
    ) -> int:
        stmt = select(func.count(PromoRedemption.id)).where(
            PromoRedemption.promo_code_id == promo_code_id,
            PromoRedemption.user_id == user_id,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def get_redemption_by_idempotency_key_for_update(
        session: AsyncSession, idempotency_key: str
    ) -> PromoRedemption | None:
        stmt = (
            select(PromoRedemption)
            .where(PromoRedemption.idempotency_key == idempotency_key)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_redemption(
        session: AsyncSession, *, redemption: PromoRedemption
    ) -> PromoRedemption:
        session.add(redemption)
        await session.flush()
        return redemption

    @staticmethod
    async def increment_use_count(
        session: AsyncSession,
        *,
        promo_code_id: int,
        expected_version: int,
        now_utc: datetime,
    ) -> bool:
        stmt = (
            update(PromoCode)
            .where(
                PromoCode.id == promo_code_id,
                PromoCode.version == expected_version,
            )
            .values(
                current_use_count=PromoCode.current_use_count + 1,
                version=PromoCode.version + 1,
                updated_at=now_utc,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0) == 1

    @staticmethod
    async def set_status(
        session: AsyncSession,
        *,
        promo_code_id: int,
        status: str,
        allowed_from: Collection[str] | None,
        updated_by: str | None,
        now_utc: datetime,
    ) -> int:
        stmt = update(PromoCode).where(PromoCode.id == promo_code_id)
        if allowed_from is not None:
            stmt = stmt.where(PromoCode.status.in_(tuple(allowed_from)))
        stmt = stmt.values(
            status=status,
            version=PromoCode.version + 1,
            updated_by=updated_by,
            updated_at=now_utc,
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def expire_codes_past_end(session: AsyncSession, *, now_utc: datetime) -> int:
        stmt = (
            update(PromoCode)
            .where(
                PromoCode.status.in_(("ACTIVE", "SCHEDULED", "PAUSED")),
                PromoCode.ends_at.is_not(None),
                PromoCode.ends_at < now_utc,
            )
            .values(status="EXPIRED", version=PromoCode.version + 1, updated_at=now_utc)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)

    @staticmethod
    async def activate_started_codes(session: AsyncSession, *, now_utc: datetime) -> int:
        stmt = (
            update(PromoCode)
            .where(
                PromoCode.status == "SCHEDULED",
                PromoCode.starts_at.is_not(None),
                PromoCode.starts_at <= now_utc,
                (PromoCode.ends_at.is_(None)) | (PromoCode.ends_at >= now_utc),
            )
            .values(status="ACTIVE", version=PromoCode.version + 1, updated_at=now_utc)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0)
