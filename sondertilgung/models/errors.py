"""Structured calculation errors.

Errors are values, not exceptions: they travel inside ``Err`` and carry the
operation name plus the numbers needed to diagnose a failure without replaying
the calculation.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    # Construction
    NEGATIVE_AMOUNT = "NegativeAmount"
    EXCEEDS_MAXIMUM = "ExceedsMaximum"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_INTEREST_RATE = "InvalidInterestRate"
    INVALID_TERM = "InvalidTerm"
    INVALID_PAYMENT_MONTH = "InvalidPaymentMonth"
    INVALID_PERCENTAGE = "InvalidPercentage"

    # Mathematical infeasibility
    INSUFFICIENT_PAYMENT = "InsufficientPayment"
    MATHEMATICAL_ERROR = "MathematicalError"
    PAYMENT_TOO_HIGH = "PaymentTooHigh"

    # Consistency
    INCONSISTENT_PARAMETERS = "InconsistentParameters"
    INVALID_LOAN_CONFIGURATION = "InvalidLoanConfiguration"
    INVALID_PARAMETERS = "InvalidParameters"
    DUPLICATE_PAYMENT_MONTH = "DuplicatePaymentMonth"

    # Simulation
    SIMULATION_LIMIT_EXCEEDED = "SimulationLimitExceeded"
    SCHEDULE_ANALYSIS_ERROR = "ScheduleAnalysisError"


@dataclass(frozen=True)
class CalculationError:
    kind: ErrorKind
    message: str
    operation: str = ""
    context: dict[str, Any] = field(default_factory=dict)
    cause: Optional["CalculationError"] = None

    def within(self, operation: str, **context: Any) -> "CalculationError":
        """Wrap this error as the cause of a failure in ``operation``."""
        return CalculationError(
            kind=self.kind,
            message=self.message,
            operation=operation,
            context=context,
            cause=self,
        )

    def describe(self) -> str:
        lines = [f"{self.kind.value} in {self.operation or '<unknown>'}", f"  message: {self.message}"]
        if self.context:
            lines.append(f"  context: {json.dumps(self.context, default=str, sort_keys=True)}")
        if self.cause is not None:
            lines.append("  caused by: " + self.cause.describe().replace("\n", "\n  "))
        return "\n".join(lines)


@dataclass(frozen=True)
class SimulationError(CalculationError):
    """Failure inside the month-by-month simulation."""
    month: int = 0
    balance: Decimal = Decimal("0")

    def describe(self) -> str:
        return super().describe() + f"\n  at month {self.month}, balance {self.balance}"


def invalid(kind: ErrorKind, message: str, operation: str = "", **context: Any) -> CalculationError:
    return CalculationError(kind=kind, message=message, operation=operation, context=context)
