from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.enrollments import Enrollment


class EnrollmentsRepo:
    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, enrollment_id: UUID) -> Enrollment | None:
        stmt = select(Enrollment).where(Enrollment.id == enrollment_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, enrollment: Enrollment) -> Enrollment:
        session.add(enrollment)
        await session.flush()
        return enrollment

    @staticmethod
    async def update_if_version(
        session: AsyncSession,
        *,
        enrollment_id: UUID,
        expected_version: int,
        values: dict[str, Any],
    ) -> bool:
        stmt = (
            update(Enrollment)
            .where(
                Enrollment.id == enrollment_id,
                Enrollment.version == expected_version,
            )
            .values(version=expected_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0) == 1
