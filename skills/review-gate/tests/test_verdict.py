"""Tests for reviewer output parsing."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

_scripts_dir = Path(__file__).resolve().parent.parent / "scripts"
if str(_scripts_dir) not in sys.path:
    sys.path.insert(0, str(_scripts_dir))

from verdict import UNPARSEABLE_TEXT, normalize_severity, parse_verdict


class TestJsonVerdict:
    def test_plain_json(self):
        output = json.dumps({
            "severity": "minor",
            "summary": "Missing docstring on public helper.",
            "issues": ["utils.py: add docstring"],
        })
        verdict = parse_verdict(output)
        assert verdict.severity == "minor"
        assert verdict.text == "Missing docstring on public helper."
        assert verdict.issues == ["utils.py: add docstring"]
        assert verdict.parsed is True

    def test_json_inside_prose_and_fences(self):
        output = (
            "Here is my review.\n"
            "```json\n"
            '{"severity": "critical", "text": "SQL injection risk"}\n'
            "```\n"
        )
        verdict = parse_verdict(output)
        assert verdict.severity == "critical"
        assert verdict.text == "SQL injection risk"

    @pytest.mark.parametrize(
        ("token", "expected"),
        [("pass", "none"), ("WARN", "minor"), ("fail", "critical")],
    )
    def test_verdict_key(self, token: str, expected: str):
        verdict = parse_verdict(json.dumps({"verdict": token, "explanation": "x"}))
        assert verdict.severity == expected
        assert verdict.text == "x"

    def test_blank_text_falls_back_to_summary(self):
        output = json.dumps({"severity": "critical", "text": "", "summary": "SQL injection risk"})
        verdict = parse_verdict(output)
        assert verdict.text == "SQL injection risk"

    def test_single_issue_string_is_wrapped(self):
        verdict = parse_verdict(json.dumps({"severity": "minor", "issues": "one thing"}))
        assert verdict.issues == ["one thing"]

    def test_unknown_severity_in_json_falls_through(self):
        verdict = parse_verdict(json.dumps({"severity": "catastrophic"}))
        assert verdict.severity == "critical"
        assert verdict.parsed is False


class TestMarkerVerdict:
    def test_verdict_line(self):
        output = "Reviewed 3 files.\nVERDICT: PASS\nNothing to report."
        verdict = parse_verdict(output)
        assert verdict.severity == "none"
        assert verdict.text == output

    def test_markdown_severity_line(self):
        verdict = parse_verdict("## Review\n**Severity:** minor\n- naming")
        assert verdict.severity == "minor"

    def test_case_insensitive(self):
        assert parse_verdict("verdict: fail").severity == "critical"

    def test_first_recognized_marker_wins(self):
        output = "Severity: unclear\nVERDICT: WARN\nVERDICT: FAIL"
        assert parse_verdict(output).severity == "minor"


class TestUnparseable:
    @pytest.mark.parametrize("output", ["", "   \n", "Looks good to me!", "{not json"])
    def test_fails_safe_to_critical(self, output: str):
        verdict = parse_verdict(output)
        assert verdict.severity == "critical"
        assert verdict.parsed is False
        assert verdict.text.startswith(UNPARSEABLE_TEXT)

    def test_raw_output_is_kept(self):
        verdict = parse_verdict("Looks good to me!")
        assert "Looks good to me!" in verdict.text


def test_normalize_severity():
    assert normalize_severity(" OK ") == "none"
    assert normalize_severity("warning") == "minor"
    assert normalize_severity("block") == "critical"
    assert normalize_severity("unknown") is None
    assert normalize_severity(3) is None
