"""Pre-push review gate: decide whether a push may proceed."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Protocol, Sequence, TextIO

from src.schemas import GateSettings, ReviewVerdict

logger = logging.getLogger(__name__)


class ReviewGateError(Exception):
    """Base error for the review gate."""


class ReviewerUnavailable(ReviewGateError):
    """External reviewer missing, crashed, timed out or not configured.

    ``attempted`` is False when no reviewer process was started at all.
    """

    def __init__(self, message: str, attempted: bool = True):
        super().__init__(message)
        self.attempted = attempted


# ---------------------------------------------------------------------------
# Decision reasons
# ---------------------------------------------------------------------------

REASON_AUTO_REVIEW_DISABLED = "auto_review_disabled"
REASON_NO_CHANGES = "no_changes"
REASON_TOO_MANY_FILES = "too_many_files"
REASON_REVIEWER_UNAVAILABLE = "reviewer_unavailable"
REASON_VERDICT_OK = "verdict_ok"
REASON_CRITICAL_NON_INTERACTIVE = "critical_non_interactive"
REASON_OPERATOR_APPROVED = "operator_approved"
REASON_OPERATOR_DECLINED = "operator_declined"
REASON_NO_TERMINAL = "no_terminal"

APPROVE_ANSWERS = {"", "y"}


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


class Reviewer(Protocol):
    """Capability that turns a diff into a verdict."""

    def review(self, changed_files: Sequence[str], diff: str) -> ReviewVerdict:
        ...


@dataclass(frozen=True)
class PushAttempt:
    """One invocation of the gate."""

    changed_files: tuple[str, ...]
    max_files: int
    auto_review_enabled: bool
    interactive: bool
    diff: str = ""

    @classmethod
    def from_settings(
        cls, changed_files: Sequence[str], settings: GateSettings, diff: str = "",
    ) -> PushAttempt:
        return cls(
            changed_files=tuple(changed_files),
            max_files=settings.max_files,
            auto_review_enabled=settings.auto_review,
            interactive=settings.interactive,
            diff=diff,
        )


@dataclass(frozen=True)
class GateDecision:
    """Final allow/block outcome of the gate."""

    allowed: bool
    reason: str
    verdict: ReviewVerdict | None = None
    reviewer_invoked: bool = False

    @property
    def exit_code(self) -> int:
        return 0 if self.allowed else 1


# ---------------------------------------------------------------------------
# Operator prompt
# ---------------------------------------------------------------------------


def ask_operator(verdict: ReviewVerdict, stream_in: TextIO, stream_out: TextIO) -> bool:
    """Show the verdict and read one answer line.

    Returns True to proceed, False to abort. End of input counts as an
    empty answer, which proceeds.
    """
    stream_out.write("\nReview flagged critical issues:\n")
    stream_out.write(f"{verdict.text or '(no explanation given)'}\n")
    for issue in verdict.issues:
        stream_out.write(f"  - {issue}\n")
    stream_out.write("Push anyway? [Y/n] ")
    stream_out.flush()

    line = stream_in.readline()
    if line == "":
        stream_out.write("\n")
    return line.strip().lower() in APPROVE_ANSWERS


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


def evaluate_attempt(
    attempt: PushAttempt,
    reviewer: Reviewer,
    prompt_in: TextIO | None = None,
    prompt_out: TextIO | None = None,
) -> GateDecision:
    """Run the gate for ``attempt``."""
    prompt_out = prompt_out or sys.stderr

    if not attempt.auto_review_enabled:
        return GateDecision(allowed=True, reason=REASON_AUTO_REVIEW_DISABLED)
    if not attempt.changed_files:
        return GateDecision(allowed=True, reason=REASON_NO_CHANGES)
    if len(attempt.changed_files) > attempt.max_files:
        logger.info(
            "Skipping review: %d changed files exceeds max_files=%d",
            len(attempt.changed_files), attempt.max_files,
        )
        return GateDecision(allowed=True, reason=REASON_TOO_MANY_FILES)

    try:
        verdict = reviewer.review(attempt.changed_files, attempt.diff)
    except ReviewerUnavailable as e:
        logger.warning("Reviewer unavailable, allowing push without review: %s", e)
        return GateDecision(
            allowed=True, reason=REASON_REVIEWER_UNAVAILABLE, reviewer_invoked=e.attempted,
        )

    if not verdict.is_critical:
        return GateDecision(
            allowed=True, reason=REASON_VERDICT_OK, verdict=verdict, reviewer_invoked=True,
        )

    if not attempt.interactive:
        prompt_out.write(f"Review flagged critical issues:\n{verdict.text}\n")
        return GateDecision(
            allowed=False, reason=REASON_CRITICAL_NON_INTERACTIVE, verdict=verdict,
            reviewer_invoked=True,
        )

    if prompt_in is None:
        prompt_out.write(f"Review flagged critical issues:\n{verdict.text}\n")
        logger.warning("No terminal available to confirm the push, blocking")
        return GateDecision(
            allowed=False, reason=REASON_NO_TERMINAL, verdict=verdict, reviewer_invoked=True,
        )

    answer = ask_operator(verdict, prompt_in, prompt_out)
    return GateDecision(
        allowed=answer,
        reason=REASON_OPERATOR_APPROVED if answer else REASON_OPERATOR_DECLINED,
        verdict=verdict,
        reviewer_invoked=True,
    )


def evaluate(
    changed_files: Sequence[str],
    settings: GateSettings,
    reviewer: Reviewer,
    diff: str = "",
    prompt_in: TextIO | None = None,
    prompt_out: TextIO | None = None,
) -> GateDecision:
    """Decide whether a push touching ``changed_files`` may proceed."""
    attempt = PushAttempt.from_settings(changed_files, settings, diff=diff)
    return evaluate_attempt(attempt, reviewer, prompt_in=prompt_in, prompt_out=prompt_out)
