from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.commerce.enrollments.transitions import is_transition_defined, transition
from app.commerce.enrollments.types import (
    CancellationOutcome,
    Enrollment,
    EnrollmentEvent,
    EnrollmentStatus,
    ScheduleRef,
    TransitionContext,
    TransitionError,
    TransitionErrorCode,
)
from app.commerce.errors import (
    CommerceInvariantError,
    ConcurrencyConflictError,
    EnrollmentNotFoundError,
)
from app.commerce.money import Money
from app.commerce.refunds.rules import decide, resolve_deposit
from app.commerce.refunds.types import CancellationReason, DepositPolicy, RefundTier
from app.core.config import get_settings
from app.db.models.enrollments import Enrollment as EnrollmentRow
from app.db.repo.enrollments_repo import EnrollmentsRepo

logger = structlog.get_logger(__name__)

_STATUS_TIMESTAMP_COLUMNS = {
    EnrollmentStatus.CONFIRMED: "confirmed_at",
    EnrollmentStatus.COMPLETED: "completed_at",
    EnrollmentStatus.CANCELLED: "cancelled_at",
}


def _schedule_from_columns(
    schedule_id: str | None,
    course_id: str,
    starts_at: datetime | None,
    ends_at: datetime | None,
) -> ScheduleRef | None:
    if schedule_id is None or starts_at is None or ends_at is None:
        return None
    return ScheduleRef(
        schedule_id=schedule_id,
        course_id=course_id,
        starts_at=starts_at,
        ends_at=ends_at,
    )


def enrollment_from_row(row: EnrollmentRow) -> Enrollment:
    currency = row.currency
    return Enrollment(
        enrollment_id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        status=EnrollmentStatus(row.status),
        schedule=_schedule_from_columns(
            row.schedule_id, row.course_id, row.schedule_starts_at, row.schedule_ends_at
        ),
        pending_schedule=_schedule_from_columns(
            row.pending_schedule_id,
            row.course_id,
            row.pending_schedule_starts_at,
            row.pending_schedule_ends_at,
        ),
        amount_paid=Money(row.amount_paid_minor, currency),
        amount_due=Money(row.amount_due_minor, currency),
        deposit_amount=Money(row.deposit_amount_minor, currency),
        payment_reference=row.payment_reference,
        cancellation_tier=RefundTier(row.cancellation_tier) if row.cancellation_tier else None,
        version=row.version,
    )


def _row_values(enrollment: Enrollment, *, now_utc: datetime) -> dict[str, Any]:
    schedule = enrollment.schedule
    pending = enrollment.pending_schedule
    values: dict[str, Any] = {
        "status": enrollment.status.value,
        "schedule_id": schedule.schedule_id if schedule else None,
        "schedule_starts_at": schedule.starts_at if schedule else None,
        "schedule_ends_at": schedule.ends_at if schedule else None,
        "pending_schedule_id": pending.schedule_id if pending else None,
        "pending_schedule_starts_at": pending.starts_at if pending else None,
        "pending_schedule_ends_at": pending.ends_at if pending else None,
        "amount_paid_minor": enrollment.amount_paid.minor_units,
        "amount_due_minor": enrollment.amount_due.minor_units,
        "payment_reference": enrollment.payment_reference,
        "cancellation_tier": (
            enrollment.cancellation_tier.value if enrollment.cancellation_tier else None
        ),
        "updated_at": now_utc,
    }
    timestamp_column = _STATUS_TIMESTAMP_COLUMNS.get(enrollment.status)
    if timestamp_column is not None:
        values[timestamp_column] = now_utc
    return values


def _cancel_rejected(current: Enrollment, code: TransitionErrorCode) -> CancellationOutcome:
    logger.info(
        "enrollment_transition_rejected",
        enrollment_id=str(current.enrollment_id),
        status=current.status.value,
        event_name=EnrollmentEvent.CANCEL.value,
        code=code.value,
        blockers=[],
    )
    return CancellationOutcome(
        decision=None,
        result=TransitionError(code=code, status=current.status, event=EnrollmentEvent.CANCEL),
    )


class EnrollmentService:
    @staticmethod
    async def register(
        session: AsyncSession,
        *,
        student_id: str,
        course_id: str,
        schedule: ScheduleRef,
        course_price: Money,
        deposit_policy: DepositPolicy,
        now_utc: datetime | None = None,
    ) -> Enrollment:
        """Creates a pending enrollment with its deposit pinned from the current policy."""
        now_utc = now_utc or datetime.now(timezone.utc)
        deposit = resolve_deposit(deposit_policy, course_price)
        row = await EnrollmentsRepo.create(
            session,
            enrollment=EnrollmentRow(
                id=uuid4(),
                student_id=student_id,
                course_id=course_id,
                status=EnrollmentStatus.PENDING.value,
                schedule_id=schedule.schedule_id,
                schedule_starts_at=schedule.starts_at,
                schedule_ends_at=schedule.ends_at,
                amount_paid_minor=0,
                amount_due_minor=course_price.minor_units,
                deposit_amount_minor=deposit.minor_units,
                currency=course_price.currency,
                version=0,
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )
        logger.info(
            "enrollment_registered",
            enrollment_id=str(row.id),
            student_id=student_id,
            course_id=course_id,
            deposit_minor=deposit.minor_units,
        )
        return enrollment_from_row(row)

    @staticmethod
    async def _load_for_update(session: AsyncSession, enrollment_id: UUID) -> EnrollmentRow:
        row = await EnrollmentsRepo.get_by_id_for_update(session, enrollment_id)
        if row is None:
            raise EnrollmentNotFoundError(str(enrollment_id))
        return row

    @staticmethod
    async def _apply_locked(
        session: AsyncSession,
        *,
        row: EnrollmentRow,
        event: EnrollmentEvent,
        context: TransitionContext,
    ) -> Enrollment | TransitionError:
        current = enrollment_from_row(row)
        try:
            outcome = transition(
                current,
                event,
                context,
                tz_name=get_settings().policy_timezone,
            )
        except CommerceInvariantError as exc:
            logger.error(
                "commerce_invariant_violation",
                operation="enrollment_transition",
                enrollment_id=str(current.enrollment_id),
                event_name=event.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        if isinstance(outcome, TransitionError):
            logger.info(
                "enrollment_transition_rejected",
                enrollment_id=str(current.enrollment_id),
                status=current.status.value,
                event_name=event.value,
                code=outcome.code.value,
                blockers=sorted(blocker.value for blocker in outcome.blockers),
            )
            return outcome

        updated = await EnrollmentsRepo.update_if_version(
            session,
            enrollment_id=current.enrollment_id,
            expected_version=current.version,
            values=_row_values(outcome, now_utc=context.now_utc),
        )
        if not updated:
            raise ConcurrencyConflictError(
                f"enrollment {current.enrollment_id} changed during {event.value}"
            )

        outcome.version = current.version + 1
        logger.info(
            "enrollment_transitioned",
            enrollment_id=str(current.enrollment_id),
            from_status=current.status.value,
            to_status=outcome.status.value,
            event_name=event.value,
        )
        return outcome

    @staticmethod
    async def apply_event(
        session: AsyncSession,
        *,
        enrollment_id: UUID,
        event: EnrollmentEvent,
        context: TransitionContext,
    ) -> Enrollment | TransitionError:
        """Locks the row and applies one event.

        A version mismatch on write raises ``ConcurrencyConflictError``; callers run
        the whole transaction through ``run_with_conflict_retry``.
        """
        row = await EnrollmentService._load_for_update(session, enrollment_id)
        return await EnrollmentService._apply_locked(
            session,
            row=row,
            event=event,
            context=context,
        )

    @staticmethod
    async def cancel(
        session: AsyncSession,
        *,
        enrollment_id: UUID,
        reason: CancellationReason = CancellationReason.STUDENT_REQUEST,
        credit_terms_acknowledged: bool = False,
        now_utc: datetime | None = None,
    ) -> CancellationOutcome:
        """Decides the refund from the bound schedule and cancels when policy allows it.

        Like ``apply_event`` this raises ``ConcurrencyConflictError`` on a lost race;
        callers run the transaction through ``run_with_conflict_retry``.
        """
        now_utc = now_utc or datetime.now(timezone.utc)
        row = await EnrollmentService._load_for_update(session, enrollment_id)
        current = enrollment_from_row(row)
        if not is_transition_defined(current.status, EnrollmentEvent.CANCEL):
            return _cancel_rejected(current, TransitionErrorCode.INVALID_TRANSITION)
        if current.schedule is None:
            return _cancel_rejected(current, TransitionErrorCode.SCHEDULE_REQUIRED)

        decision = decide(
            current.schedule.starts_at,
            now_utc,
            current.amount_paid,
            current.deposit_amount,
            reason=reason,
            tz_name=get_settings().policy_timezone,
        )
        result = await EnrollmentService._apply_locked(
            session,
            row=row,
            event=EnrollmentEvent.CANCEL,
            context=TransitionContext(
                now_utc=now_utc,
                refund_decision=decision,
                credit_terms_acknowledged=credit_terms_acknowledged,
            ),
        )
        if not isinstance(result, TransitionError):
            logger.info(
                "enrollment_cancelled",
                enrollment_id=str(current.enrollment_id),
                reason=reason.value,
                tier=decision.tier.value,
                days_until_class=decision.days_until_class,
            )
        return CancellationOutcome(decision=decision, result=result)
