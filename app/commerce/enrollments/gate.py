from __future__ import annotations

from app.commerce.enrollments.types import (
    FormCompletionSnapshot,
    GateBlocker,
    GateVerdict,
    PaymentBalanceSnapshot,
    WaiverStatusSnapshot,
)


def assess(
    form_status: FormCompletionSnapshot | None,
    waiver_status: WaiverStatusSnapshot | None,
    payment_status: PaymentBalanceSnapshot | None,
) -> GateVerdict:
    """Aggregates forms, waivers and balance into one readiness verdict.

    A snapshot the caller could not supply counts as not satisfied.
    """
    blockers: set[GateBlocker] = set()
    if form_status is None or not form_status.is_complete:
        blockers.add(GateBlocker.FORMS_INCOMPLETE)
    if waiver_status is None or not waiver_status.all_signed:
        blockers.add(GateBlocker.WAIVERS_PENDING)
    if payment_status is None or not payment_status.is_paid:
        blockers.add(GateBlocker.BALANCE_DUE)
    return GateVerdict(ready=not blockers, blockers=frozenset(blockers))
