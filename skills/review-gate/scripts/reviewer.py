"""Subprocess-backed reviewer and review prompt construction."""

from __future__ import annotations

import logging
import subprocess
from typing import Sequence

from gate import ReviewerUnavailable
from src.schemas import GateSettings, ReviewVerdict
from verdict import parse_verdict

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """\
You are reviewing a change that is about to be pushed.

Changed files ({file_count}):
{file_list}

Report security problems, data loss risks, broken behaviour and missing
error handling. Style nits are minor at most.

Reply with a JSON object on its own:
{{"severity": "none" | "minor" | "critical", "summary": "<one paragraph>", "issues": ["<issue>", ...]}}
Use "critical" only for problems that must be fixed before the push.

Diff:
```diff
{diff}
```
"""

TRUNCATION_NOTICE = "\n[... diff truncated due to size ...]"


def truncate_diff(diff: str, max_chars: int) -> str:
    if len(diff) <= max_chars:
        return diff
    logger.info("Diff too large (%d chars), truncating to %d", len(diff), max_chars)
    return diff[:max_chars] + TRUNCATION_NOTICE


def build_review_prompt(changed_files: Sequence[str], diff: str, max_diff_chars: int = 50_000) -> str:
    """Build the prompt handed to the reviewer on stdin."""
    file_list = "\n".join(f"- {path}" for path in changed_files) or "- (none)"
    return PROMPT_TEMPLATE.format(
        file_count=len(changed_files),
        file_list=file_list,
        diff=truncate_diff(diff, max_diff_chars).rstrip("\n"),
    )


class CommandReviewer:
    """Run an external review CLI: prompt on stdin, verdict on stdout."""

    def __init__(
        self,
        command: Sequence[str] | None,
        timeout: float = 300.0,
        max_diff_chars: int = 50_000,
        cwd: str | None = None,
    ) -> None:
        self.command = list(command) if command else []
        self.timeout = timeout
        self.max_diff_chars = max_diff_chars
        self.cwd = cwd

    @classmethod
    def from_settings(cls, settings: GateSettings, cwd: str | None = None) -> CommandReviewer:
        return cls(
            command=settings.reviewer_command,
            timeout=settings.timeout_seconds,
            max_diff_chars=settings.max_diff_chars,
            cwd=cwd,
        )

    def run(self, prompt: str) -> str:
        """Invoke the command and return its stdout."""
        if not self.command:
            raise ReviewerUnavailable("no reviewer_command configured", attempted=False)

        logger.debug("Running reviewer: %s", " ".join(self.command))
        try:
            result = subprocess.run(
                self.command,
                input=prompt,
                capture_output=True,
                text=True,
                cwd=self.cwd,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ReviewerUnavailable(f"reviewer not installed: {self.command[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise ReviewerUnavailable(f"reviewer timed out ({self.timeout:g}s)") from e
        except OSError as e:
            raise ReviewerUnavailable(f"reviewer could not start: {e}") from e

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            raise ReviewerUnavailable(f"reviewer failed: {detail}")
        return result.stdout

    def review(self, changed_files: Sequence[str], diff: str) -> ReviewVerdict:
        prompt = build_review_prompt(changed_files, diff, self.max_diff_chars)
        return parse_verdict(self.run(prompt))
