"""
Result records for fail-soft operations.
"""
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class GroupFailure:
    """A single failed step, named by the group or resource it concerned."""

    target: str
    reason: str

    def __str__(self) -> str:
        return f"{self.target}: {self.reason}"


@dataclass
class OperationReport:
    """
    Outcome of an operation that continues past individual failures.
    """

    operation: str
    succeeded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: List[GroupFailure] = field(default_factory=list)

    def record_success(self, target: str):
        self.succeeded.append(target)

    def record_skip(self, target: str):
        self.skipped.append(target)

    def record_failure(self, target: str, reason: str):
        self.failures.append(GroupFailure(target=target, reason=reason))

    @property
    def ok(self) -> bool:
        return not self.failures

    def failed_targets(self) -> List[str]:
        return [f.target for f in self.failures]


@dataclass
class ResetReport(OperationReport):
    """
    Outcome of a reset, including what the verification pass still found.
    """

    repository_removed: bool = False
    remaining: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def clean(self) -> bool:
        return not any(self.remaining.values())
