from __future__ import annotations

from dataclasses import replace
from typing import Final

from app.commerce.enrollments.gate import assess
from app.commerce.enrollments.types import (
    Enrollment,
    EnrollmentEvent,
    EnrollmentStatus,
    ScheduleRef,
    TransitionContext,
    TransitionError,
    TransitionErrorCode,
)
from app.commerce.errors import UndefinedTransitionError
from app.commerce.refunds.types import RefundTier
from app.commerce.time import POLICY_TIMEZONE, policy_local_date

TRANSITIONS: Final[dict[tuple[EnrollmentStatus, EnrollmentEvent], EnrollmentStatus]] = {
    (EnrollmentStatus.PENDING, EnrollmentEvent.PAYMENT_CONFIRMED): EnrollmentStatus.CONFIRMED,
    (EnrollmentStatus.CONFIRMED, EnrollmentEvent.COMPLETE): EnrollmentStatus.COMPLETED,
    (EnrollmentStatus.CONFIRMED, EnrollmentEvent.CANCEL): EnrollmentStatus.CANCELLED,
    (EnrollmentStatus.CONFIRMED, EnrollmentEvent.PLACE_ON_HOLD): EnrollmentStatus.ON_HOLD,
    (EnrollmentStatus.ON_HOLD, EnrollmentEvent.RESUME): EnrollmentStatus.CONFIRMED,
    (EnrollmentStatus.CONFIRMED, EnrollmentEvent.REQUEST_TRANSFER): EnrollmentStatus.TRANSFER_PENDING,
    (EnrollmentStatus.TRANSFER_PENDING, EnrollmentEvent.APPROVE_TRANSFER): EnrollmentStatus.CONFIRMED,
    (EnrollmentStatus.TRANSFER_PENDING, EnrollmentEvent.WITHDRAW_TRANSFER): EnrollmentStatus.CONFIRMED,
}


def is_transition_defined(status: EnrollmentStatus, event: EnrollmentEvent) -> bool:
    return (status, event) in TRANSITIONS


def lookup_transition(status: EnrollmentStatus, event: EnrollmentEvent) -> EnrollmentStatus:
    try:
        return TRANSITIONS[(status, event)]
    except KeyError as exc:
        raise UndefinedTransitionError(f"{status.value} + {event.value}") from exc


def _reject(
    enrollment: Enrollment,
    event: EnrollmentEvent,
    code: TransitionErrorCode,
    **details,
) -> TransitionError:
    return TransitionError(code=code, status=enrollment.status, event=event, **details)


def _check_new_schedule(
    enrollment: Enrollment,
    schedule: ScheduleRef | None,
    context: TransitionContext,
) -> TransitionErrorCode | None:
    if schedule is None:
        return TransitionErrorCode.SCHEDULE_REQUIRED
    if schedule.course_id != enrollment.course_id:
        return TransitionErrorCode.SCHEDULE_COURSE_MISMATCH
    if schedule.starts_at <= context.now_utc:
        return TransitionErrorCode.SCHEDULE_NOT_IN_FUTURE
    return None


def _confirm_payment(
    enrollment: Enrollment, event: EnrollmentEvent, context: TransitionContext
) -> Enrollment | TransitionError:
    payment = context.payment_confirmation
    if payment is None:
        return _reject(enrollment, event, TransitionErrorCode.PAYMENT_NOT_CONFIRMED)
    return replace(
        enrollment,
        status=lookup_transition(enrollment.status, event),
        amount_paid=payment.amount_paid,
        amount_due=payment.amount_due,
        payment_reference=payment.payment_reference,
    )


def _complete(
    enrollment: Enrollment,
    event: EnrollmentEvent,
    context: TransitionContext,
    tz_name: str,
) -> Enrollment | TransitionError:
    verdict = assess(context.form_status, context.waiver_status, context.payment_status)
    if not verdict.ready:
        return _reject(
            enrollment,
            event,
            TransitionErrorCode.GATE_NOT_SATISFIED,
            blockers=verdict.blockers,
        )
    schedule = enrollment.schedule
    if schedule is None or policy_local_date(context.now_utc, tz_name) < policy_local_date(
        schedule.ends_at, tz_name
    ):
        return _reject(enrollment, event, TransitionErrorCode.COURSE_NOT_YET_FINISHED)
    return replace(enrollment, status=lookup_transition(enrollment.status, event))


def _cancel(
    enrollment: Enrollment, event: EnrollmentEvent, context: TransitionContext
) -> Enrollment | TransitionError:
    decision = context.refund_decision
    if decision is None:
        return _reject(enrollment, event, TransitionErrorCode.REFUND_DECISION_REQUIRED)
    if decision.tier == RefundTier.INELIGIBLE_PAST_START:
        return _reject(
            enrollment,
            event,
            TransitionErrorCode.CANCELLATION_NOT_ALLOWED,
            refund_tier=decision.tier,
        )
    if not decision.eligible and not context.credit_terms_acknowledged:
        return _reject(
            enrollment,
            event,
            TransitionErrorCode.CREDIT_TERMS_NOT_ACKNOWLEDGED,
            refund_tier=decision.tier,
        )
    return replace(
        enrollment,
        status=lookup_transition(enrollment.status, event),
        cancellation_tier=decision.tier,
    )


def _resume(
    enrollment: Enrollment, event: EnrollmentEvent, context: TransitionContext
) -> Enrollment | TransitionError:
    error_code = _check_new_schedule(enrollment, context.new_schedule, context)
    if error_code is not None:
        return _reject(enrollment, event, error_code)
    return replace(
        enrollment,
        status=lookup_transition(enrollment.status, event),
        schedule=context.new_schedule,
    )


def _request_transfer(
    enrollment: Enrollment, event: EnrollmentEvent, context: TransitionContext
) -> Enrollment | TransitionError:
    error_code = _check_new_schedule(enrollment, context.new_schedule, context)
    if error_code is not None:
        return _reject(enrollment, event, error_code)
    assert context.new_schedule is not None
    if (
        enrollment.schedule is not None
        and enrollment.schedule.schedule_id == context.new_schedule.schedule_id
    ):
        return _reject(enrollment, event, TransitionErrorCode.SCHEDULE_UNCHANGED)
    return replace(
        enrollment,
        status=lookup_transition(enrollment.status, event),
        pending_schedule=context.new_schedule,
    )


def _approve_transfer(
    enrollment: Enrollment, event: EnrollmentEvent, context: TransitionContext
) -> Enrollment | TransitionError:
    error_code = _check_new_schedule(enrollment, enrollment.pending_schedule, context)
    if error_code is not None:
        return _reject(enrollment, event, error_code)
    return replace(
        enrollment,
        status=lookup_transition(enrollment.status, event),
        schedule=enrollment.pending_schedule,
        pending_schedule=None,
    )


def transition(
    enrollment: Enrollment,
    event: EnrollmentEvent,
    context: TransitionContext,
    *,
    tz_name: str = POLICY_TIMEZONE,
) -> Enrollment | TransitionError:
    """Applies one lifecycle event and returns the updated enrollment.

    The input enrollment is never mutated. A pair outside the transition table, or a
    failed guard, comes back as a TransitionError describing why.
    """
    if not is_transition_defined(enrollment.status, event):
        return _reject(enrollment, event, TransitionErrorCode.INVALID_TRANSITION)

    if event == EnrollmentEvent.PAYMENT_CONFIRMED:
        return _confirm_payment(enrollment, event, context)
    if event == EnrollmentEvent.COMPLETE:
        return _complete(enrollment, event, context, tz_name)
    if event == EnrollmentEvent.CANCEL:
        return _cancel(enrollment, event, context)
    if event == EnrollmentEvent.PLACE_ON_HOLD:
        return replace(
            enrollment,
            status=lookup_transition(enrollment.status, event),
            schedule=None,
            pending_schedule=None,
        )
    if event == EnrollmentEvent.RESUME:
        return _resume(enrollment, event, context)
    if event == EnrollmentEvent.REQUEST_TRANSFER:
        return _request_transfer(enrollment, event, context)
    if event == EnrollmentEvent.APPROVE_TRANSFER:
        return _approve_transfer(enrollment, event, context)
    return replace(
        enrollment,
        status=lookup_transition(enrollment.status, event),
        pending_schedule=None,
    )
