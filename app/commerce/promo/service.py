from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.commerce.concurrency import VersionedCounter
from app.commerce.errors import (
    CommerceInvariantError,
    ConcurrencyConflictError,
    PromoCodeNotFoundError,
    PromoIdempotencyConflictError,
    PromoStatusTransitionError,
)
from app.commerce.money import Money
from app.commerce.promo.codes import normalize_promo_code
from app.commerce.promo.rules import evaluate_promo_code
from app.commerce.promo.types import (
    Cart,
    DiscountResult,
    PromoCodeRule,
    PromoCodeStatus,
    PromoCodeType,
    PromoRedemptionResult,
    PromoRejection,
    PromoScope,
    PromoScopeType,
    RedemptionHistory,
    StackingPolicy,
)
from app.core.config import get_settings
from app.db.models.promo_codes import PromoCode
from app.db.models.promo_redemptions import PromoRedemption
from app.db.repo.promo_repo import PromoRepo

logger = structlog.get_logger(__name__)

# Retirement (EXPIRED) is accepted from any status and is never undone.
_STATUS_ALLOWED_FROM: dict[PromoCodeStatus, tuple[PromoCodeStatus, ...]] = {
    PromoCodeStatus.PAUSED: (PromoCodeStatus.ACTIVE, PromoCodeStatus.SCHEDULED),
    PromoCodeStatus.ACTIVE: (PromoCodeStatus.PAUSED,),
}


def _parse_days_of_week(raw_value: str | None) -> frozenset[int]:
    if not raw_value:
        return frozenset()
    return frozenset(int(part) for part in raw_value.split(",") if part.strip())


def promo_rule_from_row(promo_code: PromoCode) -> PromoCodeRule:
    currency = promo_code.currency
    return PromoCodeRule(
        code=promo_code.code,
        code_type=PromoCodeType(promo_code.code_type),
        percent_off=promo_code.percent_off,
        amount_off=(
            Money(promo_code.amount_off_minor, currency)
            if promo_code.amount_off_minor is not None
            else None
        ),
        scope=PromoScope(
            scope_type=PromoScopeType(promo_code.scope_type),
            course_ids=frozenset(promo_code.scope_course_ids or ()),
            category_ids=frozenset(promo_code.scope_category_ids or ()),
            excluded_course_ids=frozenset(promo_code.exclusion_course_ids or ()),
            excluded_category_ids=frozenset(promo_code.exclusion_category_ids or ()),
        ),
        status=PromoCodeStatus(promo_code.status),
        starts_at=promo_code.starts_at,
        ends_at=promo_code.ends_at,
        max_total_uses=promo_code.max_total_uses,
        max_uses_per_user=promo_code.max_uses_per_user,
        use_counter=VersionedCounter(
            count=promo_code.current_use_count,
            version=promo_code.version,
        ),
        min_cart_subtotal=(
            Money(promo_code.min_cart_subtotal_minor, currency)
            if promo_code.min_cart_subtotal_minor is not None
            else None
        ),
        stacking_policy=StackingPolicy(promo_code.stacking_policy),
        apply_to_tax=promo_code.apply_to_tax,
        apply_to_shipping=promo_code.apply_to_shipping,
        first_purchase_only=promo_code.first_purchase_only,
        new_customers_only=promo_code.new_customers_only,
        allowed_user_ids=frozenset(promo_code.allowed_user_ids or ()),
        denied_user_ids=frozenset(promo_code.denied_user_ids or ()),
        valid_days_of_week=_parse_days_of_week(promo_code.valid_days_of_week),
        valid_time_start=promo_code.valid_time_start,
        valid_time_end=promo_code.valid_time_end,
        promo_code_id=promo_code.id,
    )


class PromoService:
    @staticmethod
    async def _evaluate_row(
        session: AsyncSession,
        *,
        code: str,
        promo_code: PromoCode | None,
        cart: Cart,
        now_utc: datetime,
    ) -> DiscountResult | PromoRejection:
        promo_codes: dict[str, PromoCodeRule] = {}
        history = RedemptionHistory()
        if promo_code is not None:
            promo_codes[promo_code.code] = promo_rule_from_row(promo_code)
            user_uses = await PromoRepo.count_user_redemptions(
                session,
                promo_code_id=promo_code.id,
                user_id=cart.customer.user_id,
            )
            history = RedemptionHistory(uses_by_user={cart.customer.user_id: user_uses})

        try:
            outcome = evaluate_promo_code(
                code,
                cart,
                history,
                promo_codes=promo_codes,
                now_utc=now_utc,
                tz_name=get_settings().policy_timezone,
            )
        except CommerceInvariantError as exc:
            logger.error(
                "commerce_invariant_violation",
                operation="promo_evaluate",
                code=code,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        if isinstance(outcome, PromoRejection):
            logger.info(
                "promo_code_rejected",
                code=code,
                user_id=cart.customer.user_id,
                reason=outcome.reason.value,
            )
        return outcome

    @staticmethod
    async def evaluate(
        session: AsyncSession,
        *,
        raw_code: str,
        cart: Cart,
        now_utc: datetime | None = None,
    ) -> DiscountResult | PromoRejection:
        """Read-only evaluation for cart display; never consumes a use."""
        now_utc = now_utc or datetime.now(timezone.utc)
        code = normalize_promo_code(raw_code)
        promo_code = await PromoRepo.get_code_by_code(session, code) if code else None
        return await PromoService._evaluate_row(
            session,
            code=code,
            promo_code=promo_code,
            cart=cart,
            now_utc=now_utc,
        )

    @staticmethod
    async def redeem_at_checkout(
        session: AsyncSession,
        *,
        raw_code: str,
        cart: Cart,
        idempotency_key: str,
        enrollment_id: UUID | None = None,
        now_utc: datetime | None = None,
    ) -> PromoRedemptionResult | PromoRejection:
        """Consumes one use of the code and records the redemption.

        Raises ``ConcurrencyConflictError`` when the use counter moved under us; callers
        wrap the whole transaction in ``run_with_conflict_retry``.
        """
        now_utc = now_utc or datetime.now(timezone.utc)

        code = normalize_promo_code(raw_code)
        promo_code = await PromoRepo.get_code_by_code_for_update(session, code) if code else None

        existing = await PromoRepo.get_redemption_by_idempotency_key_for_update(
            session, idempotency_key
        )
        if existing is not None:
            if (
                promo_code is None
                or existing.user_id != cart.customer.user_id
                or existing.promo_code_id != promo_code.id
            ):
                raise PromoIdempotencyConflictError(idempotency_key)
            return PromoRedemptionResult(
                redemption_id=existing.id,
                code=promo_code.code,
                original_amount=Money(existing.original_amount_minor, existing.currency),
                discount=Money(existing.discount_amount_minor, existing.currency),
                final_amount=Money(existing.final_amount_minor, existing.currency),
                idempotent_replay=True,
            )

        outcome = await PromoService._evaluate_row(
            session,
            code=code,
            promo_code=promo_code,
            cart=cart,
            now_utc=now_utc,
        )
        if isinstance(outcome, PromoRejection):
            return outcome
        assert promo_code is not None

        incremented = await PromoRepo.increment_use_count(
            session,
            promo_code_id=promo_code.id,
            expected_version=promo_code.version,
            now_utc=now_utc,
        )
        if not incremented:
            raise ConcurrencyConflictError(f"promo code {code} changed during checkout")

        original_amount = cart.total
        try:
            redemption = await PromoRepo.create_redemption(
                session,
                redemption=PromoRedemption(
                    id=uuid4(),
                    promo_code_id=promo_code.id,
                    user_id=cart.customer.user_id,
                    enrollment_id=enrollment_id,
                    original_amount_minor=original_amount.minor_units,
                    discount_amount_minor=outcome.discount.minor_units,
                    final_amount_minor=outcome.payable_total.minor_units,
                    currency=original_amount.currency,
                    redemption_source="CHECKOUT",
                    idempotency_key=idempotency_key,
                    created_at=now_utc,
                ),
            )
        except IntegrityError as exc:
            # Same key committed concurrently under a different code row lock.
            raise PromoIdempotencyConflictError(idempotency_key) from exc
        logger.info(
            "promo_code_redeemed",
            code=code,
            user_id=cart.customer.user_id,
            redemption_id=str(redemption.id),
            discount_minor=outcome.discount.minor_units,
        )
        return PromoRedemptionResult(
            redemption_id=redemption.id,
            code=code,
            original_amount=original_amount,
            discount=outcome.discount,
            final_amount=outcome.payable_total,
            idempotent_replay=False,
        )

    @staticmethod
    async def _set_status(
        session: AsyncSession,
        *,
        promo_code_id: int,
        status: PromoCodeStatus,
        actor: str | None,
        now_utc: datetime | None,
    ) -> None:
        now_utc = now_utc or datetime.now(timezone.utc)
        allowed_from = _STATUS_ALLOWED_FROM.get(status)
        updated = await PromoRepo.set_status(
            session,
            promo_code_id=promo_code_id,
            status=status.value,
            allowed_from=(
                None if allowed_from is None else [item.value for item in allowed_from]
            ),
            updated_by=actor,
            now_utc=now_utc,
        )
        if updated == 0:
            promo_code = await PromoRepo.get_code_by_id(session, promo_code_id)
            if promo_code is None:
                raise PromoCodeNotFoundError(str(promo_code_id))
            raise PromoStatusTransitionError(
                f"promo code {promo_code_id}: {promo_code.status} -> {status.value}"
            )
        logger.info(
            "promo_code_status_changed",
            promo_code_id=promo_code_id,
            status=status.value,
            actor=actor,
        )

    @staticmethod
    async def retire_code(
        session: AsyncSession,
        *,
        promo_code_id: int,
        actor: str | None = None,
        now_utc: datetime | None = None,
    ) -> None:
        """Soft-retires a code; used codes are never deleted."""
        await PromoService._set_status(
            session,
            promo_code_id=promo_code_id,
            status=PromoCodeStatus.EXPIRED,
            actor=actor,
            now_utc=now_utc,
        )

    @staticmethod
    async def pause_code(
        session: AsyncSession,
        *,
        promo_code_id: int,
        actor: str | None = None,
        now_utc: datetime | None = None,
    ) -> None:
        await PromoService._set_status(
            session,
            promo_code_id=promo_code_id,
            status=PromoCodeStatus.PAUSED,
            actor=actor,
            now_utc=now_utc,
        )

    @staticmethod
    async def resume_code(
        session: AsyncSession,
        *,
        promo_code_id: int,
        actor: str | None = None,
        now_utc: datetime | None = None,
    ) -> None:
        await PromoService._set_status(
            session,
            promo_code_id=promo_code_id,
            status=PromoCodeStatus.ACTIVE,
            actor=actor,
            now_utc=now_utc,
        )
