"""
eventnexus.ingestion.runtime.results

Value types exchanged between the fetch adapter and the retry controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class FailureKind(str, Enum):
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"


@dataclass(frozen=True)
class FetchSuccess:
    url: str
    final_url: str
    status_code: int
    text: str = ""
    elapsed_s: float = 0.0

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FetchFailure:
    kind: FailureKind
    url: str
    message: str
    status_code: int | None = None
    status_text: str = ""
    elapsed_s: float = 0.0

    @property
    def ok(self) -> bool:
        return False

    def short_error(self) -> str:
        if self.kind == FailureKind.HTTP_STATUS:
            return f"HTTP {self.status_code} {self.status_text}".strip()
        return f"{self.kind.value}: {self.message}"


FetchOutcome = Union[FetchSuccess, FetchFailure]


@dataclass(frozen=True)
class FetchAttempt:
    """One try of a fetch, kept only to drive retry decisions."""

    number: int
    elapsed_s: float
    outcome: str  # success | transport_error | http_error

    @classmethod
    def from_outcome(cls, number: int, outcome: FetchOutcome) -> "FetchAttempt":
        if isinstance(outcome, FetchSuccess):
            label = "success"
        elif outcome.kind == FailureKind.TRANSPORT:
            label = "transport_error"
        else:
            label = "http_error"
        return cls(number=number, elapsed_s=outcome.elapsed_s, outcome=label)


@dataclass
class RetryResult:
    outcome: FetchOutcome
    attempts: list[FetchAttempt] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome.ok

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)
