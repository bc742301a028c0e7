from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from app.commerce.money import Money
from app.commerce.refunds.types import RefundDecision, RefundTier


class EnrollmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on-hold"
    TRANSFER_PENDING = "transfer-pending"


class EnrollmentEvent(str, Enum):
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    COMPLETE = "COMPLETE"
    CANCEL = "CANCEL"
    PLACE_ON_HOLD = "PLACE_ON_HOLD"
    RESUME = "RESUME"
    REQUEST_TRANSFER = "REQUEST_TRANSFER"
    APPROVE_TRANSFER = "APPROVE_TRANSFER"
    WITHDRAW_TRANSFER = "WITHDRAW_TRANSFER"


class TransitionErrorCode(str, Enum):
    INVALID_TRANSITION = "INVALID_TRANSITION"
    PAYMENT_NOT_CONFIRMED = "PAYMENT_NOT_CONFIRMED"
    GATE_NOT_SATISFIED = "GATE_NOT_SATISFIED"
    COURSE_NOT_YET_FINISHED = "COURSE_NOT_YET_FINISHED"
    REFUND_DECISION_REQUIRED = "REFUND_DECISION_REQUIRED"
    CANCELLATION_NOT_ALLOWED = "CANCELLATION_NOT_ALLOWED"
    CREDIT_TERMS_NOT_ACKNOWLEDGED = "CREDIT_TERMS_NOT_ACKNOWLEDGED"
    SCHEDULE_REQUIRED = "SCHEDULE_REQUIRED"
    SCHEDULE_COURSE_MISMATCH = "SCHEDULE_COURSE_MISMATCH"
    SCHEDULE_NOT_IN_FUTURE = "SCHEDULE_NOT_IN_FUTURE"
    SCHEDULE_UNCHANGED = "SCHEDULE_UNCHANGED"


class GateBlocker(str, Enum):
    FORMS_INCOMPLETE = "FORMS_INCOMPLETE"
    WAIVERS_PENDING = "WAIVERS_PENDING"
    BALANCE_DUE = "BALANCE_DUE"


class WaiverInstanceStatus(str, Enum):
    SIGNED = "SIGNED"
    PENDING = "PENDING"


@dataclass(frozen=True, slots=True)
class ScheduleRef:
    schedule_id: str
    course_id: str
    starts_at: datetime
    ends_at: datetime


@dataclass(frozen=True, slots=True)
class FormCompletionSnapshot:
    total_forms: int
    completed_forms: int
    missing_form_ids: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        return self.completed_forms >= self.total_forms and not self.missing_form_ids


@dataclass(frozen=True, slots=True)
class WaiverStatusSnapshot:
    statuses_by_template: Mapping[str, WaiverInstanceStatus] = field(default_factory=dict)

    @property
    def all_signed(self) -> bool:
        return all(
            status == WaiverInstanceStatus.SIGNED for status in self.statuses_by_template.values()
        )


@dataclass(frozen=True, slots=True)
class PaymentBalanceSnapshot:
    amount_paid: Money
    amount_due: Money

    @property
    def is_paid(self) -> bool:
        return self.amount_due.is_zero() or self.amount_due.is_negative()


@dataclass(frozen=True, slots=True)
class GateVerdict:
    ready: bool
    blockers: frozenset[GateBlocker]


@dataclass(frozen=True, slots=True)
class PaymentConfirmation:
    payment_reference: str
    amount_paid: Money
    amount_due: Money


@dataclass(slots=True)
class Enrollment:
    enrollment_id: UUID
    student_id: str
    course_id: str
    status: EnrollmentStatus
    schedule: ScheduleRef | None
    amount_paid: Money
    amount_due: Money
    deposit_amount: Money
    pending_schedule: ScheduleRef | None = None
    payment_reference: str | None = None
    cancellation_tier: RefundTier | None = None
    version: int = 0


@dataclass(frozen=True, slots=True)
class TransitionContext:
    now_utc: datetime
    payment_confirmation: PaymentConfirmation | None = None
    form_status: FormCompletionSnapshot | None = None
    waiver_status: WaiverStatusSnapshot | None = None
    payment_status: PaymentBalanceSnapshot | None = None
    refund_decision: RefundDecision | None = None
    credit_terms_acknowledged: bool = False
    new_schedule: ScheduleRef | None = None


@dataclass(frozen=True, slots=True)
class TransitionError:
    code: TransitionErrorCode
    status: EnrollmentStatus
    event: EnrollmentEvent
    blockers: frozenset[GateBlocker] = frozenset()
    refund_tier: RefundTier | None = None


@dataclass(frozen=True, slots=True)
class CancellationOutcome:
    decision: RefundDecision | None
    result: Enrollment | TransitionError
