"""CLI entrypoint for review-gate skill."""

from __future__ import annotations

import argparse
import logging
import os
import stat
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO

import yaml
from dotenv import load_dotenv

# Allow running as a hook script from any working directory
_script_dir = Path(__file__).resolve().parent
for _path in (_script_dir, _script_dir.parents[2]):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

from gate import (
    REASON_VERDICT_OK,
    GateDecision,
    ReviewGateError,
    ReviewerUnavailable,
    evaluate,
)
from gate_config import load_settings
from git_changes import (
    GitError,
    collect_push_changes,
    hooks_dir,
    parse_push_refs,
    repo_root,
    run_git,
)
from github_api import GitHubClient, GitHubError, parse_repo_slug
from reviewer import CommandReviewer
from src.schemas import GateReport, ReviewVerdict

load_dotenv()

logger = logging.getLogger("review-gate")

LOG_LEVEL_ENV = "REVIEW_GATE_LOG_LEVEL"
TTY_PATH = "/dev/tty"
HOOK_MARKER = "# review-gate pre-push hook"
HOOK_TEMPLATE = """\
#!/bin/sh
{marker}
exec "{python}" "{main}" pre-push "$@"
"""


def configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="review-gate: %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def _find_repo_root() -> Path | None:
    try:
        return repo_root()
    except GitError:
        return None


def open_terminal() -> TextIO | None:
    """Open the controlling terminal; git owns the hook's stdin."""
    try:
        return open(TTY_PATH, "r", encoding="utf-8")
    except OSError as e:
        logger.debug("No terminal for prompting: %s", e)
        return None


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _write_report(report: GateReport, output: str | None) -> None:
    if not output:
        return
    out_path = Path(output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f:
        f.write(report.model_dump_json(indent=2))


def format_verdict(verdict: ReviewVerdict) -> str:
    lines = [f"Severity: {verdict.severity}"]
    if verdict.text:
        lines.extend(["", verdict.text])
    if verdict.issues:
        lines.append("")
        lines.extend(f"  - {issue}" for issue in verdict.issues)
    return "\n".join(lines)


def format_decision(decision: GateDecision, file_count: int) -> str:
    status = "allowed" if decision.allowed else "BLOCKED"
    line = f"review-gate: push {status} ({decision.reason}, {file_count} file(s))"
    if decision.verdict is not None and decision.allowed:
        line += f", verdict {decision.verdict.severity}"
    return line


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_pre_push(args: argparse.Namespace, stdin: TextIO | None = None) -> int:
    """Gate one push. Refs to push arrive on stdin."""
    stdin = stdin or sys.stdin
    root = _find_repo_root()
    settings = load_settings(args.config, root)

    # Always drain stdin so git never writes into a closed pipe
    updates = parse_push_refs(stdin)
    changed_files: list[str] = []
    diff = ""
    if settings.auto_review:
        try:
            changes = collect_push_changes(
                updates, args.remote, base_branch=settings.base_branch, cwd=root,
            )
        except GitError as e:
            logger.warning("Could not determine pushed changes, skipping review: %s", e)
        else:
            changed_files = changes.files
            diff = changes.diff

    reviewer = CommandReviewer.from_settings(settings, cwd=str(root) if root else None)
    prompt_in = open_terminal() if settings.auto_review and settings.interactive else None
    try:
        decision = evaluate(
            changed_files, settings, reviewer, diff=diff,
            prompt_in=prompt_in, prompt_out=sys.stderr,
        )
    finally:
        if prompt_in is not None:
            prompt_in.close()

    if decision.verdict is not None and decision.reason == REASON_VERDICT_OK:
        print(format_verdict(decision.verdict), file=sys.stderr)
    print(format_decision(decision, len(changed_files)), file=sys.stderr)

    _write_report(
        GateReport(
            timestamp=_timestamp(),
            mode="pre-push",
            changed_files=changed_files,
            allowed=decision.allowed,
            reason=decision.reason,
            reviewer_invoked=decision.reviewer_invoked,
            verdict=decision.verdict,
        ),
        args.output,
    )
    return decision.exit_code


def _resolve_repo(explicit: str | None, root: Path | None) -> str:
    if explicit:
        return explicit
    try:
        url = run_git(["remote", "get-url", "origin"], cwd=root).strip()
    except GitError as e:
        raise GitHubError("--repo not given and no origin remote found") from e
    return parse_repo_slug(url)


def cmd_review(args: argparse.Namespace) -> int:
    """Review a pull request or diff file on demand. Never gates."""
    root = _find_repo_root()
    settings = load_settings(args.config, root)

    try:
        if args.diff_file:
            diff_path = Path(args.diff_file)
            if not diff_path.exists():
                print(f"Error: diff file not found: {diff_path}", file=sys.stderr)
                return 1
            diff = diff_path.read_text(encoding="utf-8")
            changed_files = diff_file_paths(diff)
        else:
            repo = _resolve_repo(args.repo, root)
            client = GitHubClient()
            changed_files = client.fetch_pull_request_files(repo, args.pr)
            diff = client.fetch_pull_request_diff(repo, args.pr)
    except GitHubError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    reviewer = CommandReviewer.from_settings(settings, cwd=str(root) if root else None)
    try:
        verdict = reviewer.review(changed_files, diff)
    except ReviewerUnavailable as e:
        print(f"Error: reviewer unavailable: {e}", file=sys.stderr)
        return 1

    print(format_verdict(verdict))
    _write_report(
        GateReport(
            timestamp=_timestamp(),
            mode="review",
            changed_files=changed_files,
            reviewer_invoked=True,
            verdict=verdict,
            pull_request=args.pr,
        ),
        args.output,
    )
    return 0


def diff_file_paths(diff: str) -> list[str]:
    """Paths named by ``diff --git a/... b/...`` headers, in order."""
    paths: list[str] = []
    for line in diff.splitlines():
        if line.startswith("diff --git "):
            _, _, b_path = line.partition(" b/")
            if b_path and b_path not in paths:
                paths.append(b_path)
    return paths


def cmd_install(args: argparse.Namespace) -> int:
    """Install the pre-push hook into the current repository."""
    try:
        target_dir = Path(args.hooks_dir) if args.hooks_dir else hooks_dir()
    except GitError as e:
        print(f"Error: not inside a git repository: {e}", file=sys.stderr)
        return 1

    hook_path = target_dir / "pre-push"
    if hook_path.exists() and not args.force:
        existing = hook_path.read_text(encoding="utf-8", errors="replace")
        if HOOK_MARKER not in existing:
            print(
                f"Error: {hook_path} already exists; use --force to replace it",
                file=sys.stderr,
            )
            return 1

    target_dir.mkdir(parents=True, exist_ok=True)
    hook_path.write_text(
        HOOK_TEMPLATE.format(
            marker=HOOK_MARKER,
            python=args.python,
            main=Path(__file__).resolve(),
        ),
        encoding="utf-8",
    )
    mode = hook_path.stat().st_mode
    hook_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    print(f"Installed: {hook_path}")
    return 0


def cmd_show_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    settings = load_settings(args.config, _find_repo_root())
    data = settings.model_dump(mode="json")
    yaml.safe_dump(data, sys.stdout, allow_unicode=True, default_flow_style=False, sort_keys=False)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="review-gate",
        description="Review pushed changes with an external reviewer before they leave the machine.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # pre-push
    p_push = subparsers.add_parser("pre-push", help="Run as git pre-push hook")
    p_push.add_argument("remote", nargs="?", default="origin", help="Remote name (passed by git)")
    p_push.add_argument("url", nargs="?", default=None, help="Remote URL (passed by git)")
    p_push.add_argument("--config", default=None, help="Path to review-gate YAML config")
    p_push.add_argument("--output", default=None, help="Write a JSON gate report to this path")

    # review
    p_review = subparsers.add_parser("review", help="Review a pull request or diff on demand")
    source = p_review.add_mutually_exclusive_group(required=True)
    source.add_argument("--pr", type=int, help="Pull request number")
    source.add_argument("--diff-file", default=None, help="Path to a unified diff file")
    p_review.add_argument("--repo", default=None, help="owner/repo (default: origin remote)")
    p_review.add_argument("--config", default=None, help="Path to review-gate YAML config")
    p_review.add_argument("--output", default=None, help="Write a JSON review report to this path")

    # install
    p_install = subparsers.add_parser("install", help="Install the pre-push hook")
    p_install.add_argument("--force", action="store_true", help="Replace an existing pre-push hook")
    p_install.add_argument("--hooks-dir", default=None, help="Hooks directory (default: from git)")
    p_install.add_argument("--python", default=sys.executable, help="Interpreter used by the hook")

    # show-config
    p_show = subparsers.add_parser("show-config", help="Print the effective configuration")
    p_show.add_argument("--config", default=None, help="Path to review-gate YAML config")

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "pre-push":
            return cmd_pre_push(args)
        if args.command == "review":
            return cmd_review(args)
        if args.command == "install":
            return cmd_install(args)
        if args.command == "show-config":
            return cmd_show_config(args)
    except ReviewGateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
