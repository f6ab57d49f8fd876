"""
Reporting for harness runs
Structured trace of every step and account snapshot, to the log or in memory
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ledger_models import AccountSnapshot, Asset

logger = logging.getLogger(__name__)


@dataclass
class ReportEvent:
    """One entry of the run trace"""

    kind: str
    name: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


class Reporter(ABC):
    """Receives the trace of a harness run.

    Components never log outcomes of their own decisions to a global sink;
    they hand them to the injected reporter.
    """

    @abstractmethod
    def step(self, name: str, **details: Any) -> None:
        """A step is about to run"""
        pass

    @abstractmethod
    def result(self, name: str, outcome: str, expected: Optional[str] = None,
               reason: Optional[str] = None) -> None:
        """A step finished"""
        pass

    @abstractmethod
    def snapshot(self, label: str, snapshot: AccountSnapshot,
                 asset: Optional[Asset] = None) -> None:
        """An account was read back"""
        pass


class LoggingReporter(Reporter):
    """Writes the trace to the standard logging system"""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def step(self, name: str, **details: Any) -> None:
        if details:
            rendered = ", ".join(f"{k}={v}" for k, v in details.items())
            self.log.info(f"{name} ({rendered})")
        else:
            self.log.info(name)

    def result(self, name: str, outcome: str, expected: Optional[str] = None,
               reason: Optional[str] = None) -> None:
        message = f"{name}: {outcome}"
        if expected:
            message += f" (expected {expected})"
        if reason:
            message += f" - {reason}"
        if expected and expected != outcome:
            self.log.error(message)
        else:
            self.log.info(message)

    def snapshot(self, label: str, snapshot: AccountSnapshot,
                 asset: Optional[Asset] = None) -> None:
        self.log.info(f"Balances for {label}: {snapshot.address}")
        self.log.info(f"  Master weight: {snapshot.master_weight}")
        self.log.info(f"  XLM: {snapshot.native_balance}")
        if asset is not None:
            self.log.info(f"  {asset.code}: {snapshot.balance(asset)}")
        for i, s in enumerate(snapshot.signers):
            self.log.info(f"  signer {i} (type: {s.type}, weight: {s.weight}): {s.public_key}")


class RecordingReporter(Reporter):
    """Keeps the trace in memory (used by tests)"""

    def __init__(self):
        self.events: List[ReportEvent] = []

    def step(self, name: str, **details: Any) -> None:
        self.events.append(ReportEvent("step", name, dict(details)))

    def result(self, name: str, outcome: str, expected: Optional[str] = None,
               reason: Optional[str] = None) -> None:
        self.events.append(ReportEvent("result", name, {
            "outcome": outcome,
            "expected": expected,
            "reason": reason,
        }))

    def snapshot(self, label: str, snapshot: AccountSnapshot,
                 asset: Optional[Asset] = None) -> None:
        self.events.append(ReportEvent("snapshot", label, {
            "snapshot": snapshot,
            "asset": asset,
        }))

    def of_kind(self, kind: str) -> List[ReportEvent]:
        return [e for e in self.events if e.kind == kind]

    def results(self) -> Dict[str, str]:
        """Map of step name -> outcome (last one wins)"""
        return {e.name: e.details["outcome"] for e in self.of_kind("result")}
