"""
Step outcomes and expectations
Every ledger step is classified as admitted, rejected or failed on infrastructure
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from ledger_client import LedgerAPIError, LedgerConnectionError, error_string

if TYPE_CHECKING:
    from reporting import Reporter

logger = logging.getLogger(__name__)


class HarnessError(Exception):
    """Base class for fatal harness errors"""
    pass


class UnexpectedOutcomeError(HarnessError):
    """A step was admitted when it should have been rejected, or vice versa"""

    def __init__(self, step: str, expected: "Expect", result: "OperationResult"):
        super().__init__(
            f"{step}: expected {expected.value}, got {result.outcome.value}"
            + (f" ({result.reason})" if result.reason else "")
        )
        self.step = step
        self.expected = expected
        self.result = result


class Outcome(str, Enum):
    ADMITTED = "admitted"
    REJECTED = "rejected"
    INFRASTRUCTURE_ERROR = "infrastructure_error"


class Expect(str, Enum):
    ADMIT = "admitted"
    REJECT = "rejected"


@dataclass
class OperationResult:
    """Tagged result of a single ledger operation"""

    outcome: Outcome
    reason: Optional[str] = None
    result_codes: Dict[str, Any] = field(default_factory=dict)

    @property
    def admitted(self) -> bool:
        return self.outcome == Outcome.ADMITTED

    @property
    def rejected(self) -> bool:
        return self.outcome == Outcome.REJECTED

    @classmethod
    def admitted_result(cls) -> "OperationResult":
        return cls(Outcome.ADMITTED)


def run_operation(operation: Callable[..., Any], *args, **kwargs) -> OperationResult:
    """
    Run a ledger client call and classify what happened.

    Ledger errors never escape: a rejection becomes REJECTED and an
    unreachable ledger becomes INFRASTRUCTURE_ERROR.
    """
    try:
        operation(*args, **kwargs)
    except LedgerConnectionError as e:
        return OperationResult(Outcome.INFRASTRUCTURE_ERROR, error_string(e), e.result_codes)
    except LedgerAPIError as e:
        return OperationResult(Outcome.REJECTED, error_string(e), e.result_codes)
    return OperationResult.admitted_result()


def expect_outcome(step: str, result: OperationResult, expected: Expect,
                   reporter: Optional["Reporter"] = None) -> OperationResult:
    """
    Compare a result with the step's expectation.

    Raises:
        UnexpectedOutcomeError: if the outcome differs, or on any
            infrastructure error (which never satisfies an expectation)
    """
    if reporter is not None:
        reporter.result(step, result.outcome.value, expected.value, result.reason)

    if result.outcome.value != expected.value:
        raise UnexpectedOutcomeError(step, expected, result)

    logger.debug(f"{step}: {result.outcome.value} as expected")
    return result
