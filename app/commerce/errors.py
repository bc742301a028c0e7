class CommerceError(Exception):
    pass


class CommerceInvariantError(CommerceError):
    pass


class CurrencyMismatchError(CommerceInvariantError):
    pass


class InvalidPercentError(CommerceInvariantError):
    pass


class OverDiscountError(CommerceInvariantError):
    pass


class UndefinedTransitionError(CommerceInvariantError):
    pass


class ConcurrencyConflictError(CommerceError):
    pass


class ConflictRetryExhaustedError(CommerceError):
    pass


class EnrollmentNotFoundError(CommerceError):
    pass


class PromoCodeNotFoundError(CommerceError):
    pass


class PromoIdempotencyConflictError(CommerceError):
    pass


class PromoStatusTransitionError(CommerceError):
    pass
