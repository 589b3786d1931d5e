"""Review verdict and gate report models for the review gate."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

Severity = Literal["none", "minor", "critical"]


class ReviewVerdict(BaseModel):
    """Verdict returned by the external reviewer for one diff."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    severity: Severity
    text: str = ""
    issues: list[str] = []
    parsed: bool = True

    @property
    def is_critical(self) -> bool:
        return self.severity == "critical"


class GateReport(BaseModel):
    """Record of one gate run or manual review, written with --output."""

    model_config = ConfigDict(extra="allow")

    timestamp: str
    mode: Literal["pre-push", "review"]
    changed_files: list[str] = []
    allowed: Optional[bool] = None
    reason: Optional[str] = None
    reviewer_invoked: bool = False
    verdict: Optional[ReviewVerdict] = None
