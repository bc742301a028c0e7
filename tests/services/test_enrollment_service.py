from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.commerce.enrollments import service as enrollment_service
from app.commerce.enrollments.service import EnrollmentService
from app.commerce.enrollments.types import (
    Enrollment,
    EnrollmentEvent,
    EnrollmentStatus,
    PaymentConfirmation,
    ScheduleRef,
    TransitionContext,
    TransitionError,
    TransitionErrorCode,
)
from app.commerce.errors import ConcurrencyConflictError, EnrollmentNotFoundError
from app.commerce.money import Money
from app.commerce.refunds.types import CancellationReason, DepositKind, DepositPolicy, RefundTier

UTC = timezone.utc
NOW_UTC = datetime(2026, 6, 1, 18, 0, tzinfo=UTC)
CLASS_STARTS_AT = datetime(2026, 6, 15, 15, 0, tzinfo=UTC)
CLASS_ENDS_AT = datetime(2026, 6, 20, 23, 0, tzinfo=UTC)


def _enrollment_row(**overrides) -> SimpleNamespace:
    values = {
        "id": uuid4(),
        "student_id": "student-1",
        "course_id": "course-wfr",
        "status": "confirmed",
        "schedule_id": "sched-june",
        "schedule_starts_at": CLASS_STARTS_AT,
        "schedule_ends_at": CLASS_ENDS_AT,
        "pending_schedule_id": None,
        "pending_schedule_starts_at": None,
        "pending_schedule_ends_at": None,
        "amount_paid_minor": 50000,
        "amount_due_minor": 0,
        "deposit_amount_minor": 15000,
        "currency": "USD",
        "payment_reference": "pay_1",
        "cancellation_tier": None,
        "version": 3,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _patch_repo(monkeypatch, *, row: SimpleNamespace | None, update_result: bool = True) -> list[dict]:
    updates: list[dict] = []

    async def _fake_get_for_update(session, enrollment_id):
        del session, enrollment_id
        return row

    async def _fake_update_if_version(session, *, enrollment_id, expected_version: int, values: dict) -> bool:
        del session
        updates.append(
            {"enrollment_id": enrollment_id, "expected_version": expected_version, "values": values}
        )
        return update_result

    monkeypatch.setattr(enrollment_service.EnrollmentsRepo, "get_by_id_for_update", _fake_get_for_update)
    monkeypatch.setattr(enrollment_service.EnrollmentsRepo, "update_if_version", _fake_update_if_version)
    return updates


@pytest.mark.asyncio
async def test_apply_event_persists_with_version_check(monkeypatch) -> None:
    row = _enrollment_row(status="pending", amount_paid_minor=0, amount_due_minor=50000)
    updates = _patch_repo(monkeypatch, row=row)

    result = await EnrollmentService.apply_event(
        SimpleNamespace(),
        enrollment_id=row.id,
        event=EnrollmentEvent.PAYMENT_CONFIRMED,
        context=TransitionContext(
            now_utc=NOW_UTC,
            payment_confirmation=PaymentConfirmation(
                payment_reference="pay_2",
                amount_paid=Money(50000),
                amount_due=Money(0),
            ),
        ),
    )

    assert isinstance(result, Enrollment)
    assert result.status == EnrollmentStatus.CONFIRMED
    assert result.version == 4
    assert len(updates) == 1
    assert updates[0]["expected_version"] == 3
    values = updates[0]["values"]
    assert values["status"] == "confirmed"
    assert values["amount_paid_minor"] == 50000
    assert values["payment_reference"] == "pay_2"
    assert values["confirmed_at"] == NOW_UTC


@pytest.mark.asyncio
async def test_apply_event_rejection_writes_nothing(monkeypatch) -> None:
    row = _enrollment_row(status="completed")
    updates = _patch_repo(monkeypatch, row=row)

    result = await EnrollmentService.apply_event(
        SimpleNamespace(),
        enrollment_id=row.id,
        event=EnrollmentEvent.CANCEL,
        context=TransitionContext(now_utc=NOW_UTC),
    )

    assert isinstance(result, TransitionError)
    assert result.code == TransitionErrorCode.INVALID_TRANSITION
    assert updates == []


@pytest.mark.asyncio
async def test_apply_event_raises_conflict_on_lost_race(monkeypatch) -> None:
    row = _enrollment_row()
    _patch_repo(monkeypatch, row=row, update_result=False)

    with pytest.raises(ConcurrencyConflictError):
        await EnrollmentService.apply_event(
            SimpleNamespace(),
            enrollment_id=row.id,
            event=EnrollmentEvent.PLACE_ON_HOLD,
            context=TransitionContext(now_utc=NOW_UTC),
        )


@pytest.mark.asyncio
async def test_apply_event_missing_enrollment(monkeypatch) -> None:
    _patch_repo(monkeypatch, row=None)

    with pytest.raises(EnrollmentNotFoundError):
        await EnrollmentService.apply_event(
            SimpleNamespace(),
            enrollment_id=uuid4(),
            event=EnrollmentEvent.PLACE_ON_HOLD,
            context=TransitionContext(now_utc=NOW_UTC),
        )


@pytest.mark.asyncio
async def test_place_on_hold_clears_schedule_columns(monkeypatch) -> None:
    row = _enrollment_row()
    updates = _patch_repo(monkeypatch, row=row)

    result = await EnrollmentService.apply_event(
        SimpleNamespace(),
        enrollment_id=row.id,
        event=EnrollmentEvent.PLACE_ON_HOLD,
        context=TransitionContext(now_utc=NOW_UTC),
    )

    assert isinstance(result, Enrollment)
    assert updates[0]["values"]["status"] == "on-hold"
    assert updates[0]["values"]["schedule_id"] is None
    assert updates[0]["values"]["schedule_starts_at"] is None


@pytest.mark.asyncio
async def test_cancel_with_credit_requires_acknowledgment(monkeypatch) -> None:
    row = _enrollment_row()
    updates = _patch_repo(monkeypatch, row=row)
    request_at = datetime(2026, 6, 5, 18, 0, tzinfo=UTC)

    refused = await EnrollmentService.cancel(SimpleNamespace(), enrollment_id=row.id, now_utc=request_at)
    accepted = await EnrollmentService.cancel(
        SimpleNamespace(),
        enrollment_id=row.id,
        credit_terms_acknowledged=True,
        now_utc=request_at,
    )

    assert refused.decision is not None
    assert refused.decision.tier == RefundTier.FUTURE_CREDIT_PARTIAL
    assert refused.decision.credit_amount == Money(35000)
    assert isinstance(refused.result, TransitionError)
    assert refused.result.code == TransitionErrorCode.CREDIT_TERMS_NOT_ACKNOWLEDGED
    assert isinstance(accepted.result, Enrollment)
    assert accepted.result.cancellation_tier == RefundTier.FUTURE_CREDIT_PARTIAL
    assert len(updates) == 1
    assert updates[0]["values"]["cancellation_tier"] == "FUTURE_CREDIT_PARTIAL"
    assert updates[0]["values"]["cancelled_at"] == request_at


@pytest.mark.asyncio
async def test_cancel_after_start_is_rejected(monkeypatch) -> None:
    row = _enrollment_row()
    updates = _patch_repo(monkeypatch, row=row)

    outcome = await EnrollmentService.cancel(
        SimpleNamespace(),
        enrollment_id=row.id,
        credit_terms_acknowledged=True,
        now_utc=datetime(2026, 6, 17, 18, 0, tzinfo=UTC),
    )

    assert outcome.decision is not None
    assert outcome.decision.rejects_cancellation is True
    assert isinstance(outcome.result, TransitionError)
    assert outcome.result.code == TransitionErrorCode.CANCELLATION_NOT_ALLOWED
    assert updates == []


@pytest.mark.asyncio
async def test_provider_cancellation_refunds_in_full(monkeypatch) -> None:
    row = _enrollment_row()
    _patch_repo(monkeypatch, row=row)

    outcome = await EnrollmentService.cancel(
        SimpleNamespace(),
        enrollment_id=row.id,
        reason=CancellationReason.PROVIDER_CANCELLED,
        now_utc=datetime(2026, 6, 14, 18, 0, tzinfo=UTC),
    )

    assert outcome.decision is not None
    assert outcome.decision.refund_amount == Money(50000)
    assert isinstance(outcome.result, Enrollment)
    assert outcome.result.status == EnrollmentStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_without_schedule_is_rejected(monkeypatch) -> None:
    row = _enrollment_row(schedule_id=None, schedule_starts_at=None, schedule_ends_at=None)
    updates = _patch_repo(monkeypatch, row=row)

    outcome = await EnrollmentService.cancel(SimpleNamespace(), enrollment_id=row.id, now_utc=NOW_UTC)

    assert outcome.decision is None
    assert isinstance(outcome.result, TransitionError)
    assert outcome.result.code == TransitionErrorCode.SCHEDULE_REQUIRED
    assert updates == []


@pytest.mark.asyncio
async def test_cancel_on_hold_enrollment_is_invalid_transition(monkeypatch) -> None:
    row = _enrollment_row(
        status="on-hold",
        schedule_id=None,
        schedule_starts_at=None,
        schedule_ends_at=None,
    )
    updates = _patch_repo(monkeypatch, row=row)

    outcome = await EnrollmentService.cancel(SimpleNamespace(), enrollment_id=row.id, now_utc=NOW_UTC)

    assert outcome.decision is None
    assert isinstance(outcome.result, TransitionError)
    assert outcome.result.code == TransitionErrorCode.INVALID_TRANSITION
    assert outcome.result.status == EnrollmentStatus.ON_HOLD
    assert updates == []


@pytest.mark.asyncio
async def test_register_pins_deposit(monkeypatch) -> None:
    created: list = []

    async def _fake_create(session, *, enrollment):
        del session
        created.append(enrollment)
        return enrollment

    monkeypatch.setattr(enrollment_service.EnrollmentsRepo, "create", _fake_create)

    result = await EnrollmentService.register(
        SimpleNamespace(),
        student_id="student-1",
        course_id="course-wfr",
        schedule=ScheduleRef(
            schedule_id="sched-june",
            course_id="course-wfr",
            starts_at=CLASS_STARTS_AT,
            ends_at=CLASS_ENDS_AT,
        ),
        course_price=Money(50000),
        deposit_policy=DepositPolicy(kind=DepositKind.PERCENT, percent=Decimal("30")),
        now_utc=NOW_UTC,
    )

    assert result.status == EnrollmentStatus.PENDING
    assert result.deposit_amount == Money(15000)
    assert result.amount_due == Money(50000)
    assert created[0].deposit_amount_minor == 15000
