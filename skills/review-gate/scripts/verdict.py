"""Parse reviewer output into a ReviewVerdict."""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from src.schemas import ReviewVerdict

logger = logging.getLogger(__name__)

# Reviewer vocabulary -> severity
SEVERITY_ALIASES: dict[str, str] = {
    "none": "none",
    "pass": "none",
    "passed": "none",
    "ok": "none",
    "minor": "minor",
    "warn": "minor",
    "warning": "minor",
    "critical": "critical",
    "fail": "critical",
    "failed": "critical",
    "block": "critical",
}

# "VERDICT: FAIL", "**Severity:** minor", ...
_MARKER_RE = re.compile(
    r"^\s*\**\s*(?:VERDICT|SEVERITY)\s*\**\s*:\s*\**\s*([A-Za-z]+)",
    re.IGNORECASE | re.MULTILINE,
)
_TEXT_KEYS = ("text", "summary", "explanation", "message")

UNPARSEABLE_TEXT = "Reviewer output could not be parsed into a verdict."


def normalize_severity(token: object) -> str | None:
    if not isinstance(token, str):
        return None
    return SEVERITY_ALIASES.get(token.strip().lower())


def _extract_json_object(output: str) -> dict | None:
    """Return the JSON object in ``output``: the whole text or its outermost braces."""
    candidates = [output.strip()]
    start = output.find("{")
    end = output.rfind("}")
    if 0 <= start < end:
        candidates.append(output[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _verdict_from_json(data: dict) -> ReviewVerdict | None:
    severity = normalize_severity(data.get("severity")) or normalize_severity(data.get("verdict"))
    if severity is None:
        return None

    text = ""
    for key in _TEXT_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            text = value
            break

    issues = data.get("issues") or []
    if not isinstance(issues, list):
        issues = [issues]

    try:
        return ReviewVerdict(
            severity=severity,
            text=text.strip(),
            issues=[str(i) for i in issues],
        )
    except ValidationError as e:
        logger.debug("JSON verdict rejected: %s", e)
        return None


def parse_verdict(output: str) -> ReviewVerdict:
    """Classify reviewer stdout.

    Tried in order: a JSON object carrying ``severity`` or ``verdict``, then a
    ``VERDICT:``/``SEVERITY:`` marker line. Output matching neither is
    treated as critical so that a human gets asked.
    """
    data = _extract_json_object(output)
    if data is not None:
        verdict = _verdict_from_json(data)
        if verdict is not None:
            return verdict

    for match in _MARKER_RE.finditer(output):
        severity = normalize_severity(match.group(1))
        if severity is not None:
            return ReviewVerdict(severity=severity, text=output.strip())

    logger.warning("Unparseable reviewer output (%d chars), treating as critical", len(output))
    text = UNPARSEABLE_TEXT
    if output.strip():
        text = f"{UNPARSEABLE_TEXT}\n\n{output.strip()}"
    return ReviewVerdict(severity="critical", text=text, parsed=False)
