"""
Error taxonomy for the pricing engine.

Every fatal condition carries the offending value so a caller (or a
verification harness) can report exactly what was rejected. The classes also
derive from the matching built-in exception, so ``except ValueError`` and
``except ZeroDivisionError`` keep working for callers that do not import this
module.
"""


class PricingError(Exception):
    """Base class for all engine errors."""


class InvalidParameter(PricingError, ValueError):
    """Out-of-domain economic input (non-positive price/vol/time, bad correlation...)."""

    def __init__(self, field, value, reason=""):
        self.field = field
        self.value = value
        self.reason = reason
        message = f"Invalid {field}={value}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class OutOfOrderObservation(InvalidParameter):
    """A realized-volatility observation is not strictly after the previous one."""

    def __init__(self, timestamp, last_timestamp):
        self.last_timestamp = last_timestamp
        super().__init__(
            "timestamp",
            timestamp,
            f"observations must be strictly increasing in time (last={last_timestamp})",
        )


class ArithmeticFault(PricingError, ArithmeticError):
    """Failure inside the fixed-point arithmetic kernel."""


class DomainError(ArithmeticFault, ValueError):
    """Operand outside the function's domain (ln/sqrt of a non-positive value)."""

    def __init__(self, operation, value):
        self.operation = operation
        self.value = value
        super().__init__(f"{operation} is undefined for {value}")


class DivideByZero(ArithmeticFault, ZeroDivisionError):
    """Division by a zero-valued operand."""

    def __init__(self, numerator):
        self.numerator = numerator
        super().__init__(f"Division of {numerator} by zero")


class RangeOverflow(ArithmeticFault, OverflowError):
    """Result does not fit the signed 256-bit fixed-point range."""

    def __init__(self, operation, value):
        self.operation = operation
        self.value = value
        super().__init__(f"{operation} result out of representable range: {value}")


class InvalidProbability(PricingError, ValueError):
    """Lattice risk-neutral probability outside (0, 1): arbitrage-inconsistent inputs."""

    def __init__(self, value, details=""):
        self.value = value
        message = f"Risk-neutral probability p={value} outside (0, 1)"
        if details:
            message = f"{message} ({details})"
        super().__init__(message)


class StepBudgetExceeded(PricingError, ValueError):
    """Caller requested more steps/iterations/panels than the published cap."""

    def __init__(self, name, requested, cap):
        self.name = name
        self.requested = requested
        self.cap = cap
        super().__init__(f"{name}={requested} exceeds the step budget of {cap}")


class NonConvergence(PricingError):
    """Implied-volatility search exhausted its iteration budget.

    Soft error: solvers return their best iterate by default and only raise
    this when called with ``strict=True``.
    """

    def __init__(self, result):
        self.result = result
        super().__init__(result.message)
