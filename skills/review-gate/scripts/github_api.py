"""GitHub REST client for reviewing a pull request on demand."""

from __future__ import annotations

import os
import re

import httpx
from dotenv import load_dotenv

from gate import ReviewGateError

BASE_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0
FILES_PER_PAGE = 100
MAX_FILE_PAGES = 30  # GitHub lists at most 3000 files per pull request

_REMOTE_RE = re.compile(
    r"(?:github\.com[:/])(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+?)(?:\.git)?/?$"
)


class GitHubError(ReviewGateError):
    """GitHub API request failed."""


def parse_repo_slug(remote_url: str) -> str:
    """Return ``owner/repo`` from an ssh or https GitHub remote URL."""
    match = _REMOTE_RE.search(remote_url.strip())
    if not match:
        raise GitHubError(f"not a GitHub remote: {remote_url}")
    return f"{match.group('owner')}/{match.group('repo')}"


class GitHubClient:
    """Minimal client for the pull request endpoints."""

    def __init__(
        self,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = BASE_URL,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        load_dotenv()
        self._token = token or os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    def _headers(self, accept: str) -> dict[str, str]:
        headers = {
            "Accept": accept,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get(self, path: str, accept: str, params: dict | None = None) -> httpx.Response:
        try:
            with httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = client.get(path, params=params, headers=self._headers(accept))
                response.raise_for_status()
        except httpx.TimeoutException as e:
            raise GitHubError(f"GitHub API timeout ({path}): {e}") from e
        except httpx.HTTPStatusError as e:
            raise GitHubError(
                f"GitHub API error ({path}, status={e.response.status_code}): {e.response.text[:200]}"
            ) from e
        except httpx.RequestError as e:
            raise GitHubError(f"GitHub API request failed ({path}): {e}") from e
        return response

    def fetch_pull_request_files(self, repo: str, number: int) -> list[str]:
        """Filenames touched by the pull request, in API order."""
        files: list[str] = []
        for page in range(1, MAX_FILE_PAGES + 1):
            response = self._get(
                f"/repos/{repo}/pulls/{number}/files",
                accept="application/vnd.github+json",
                params={"per_page": FILES_PER_PAGE, "page": page},
            )
            try:
                payload = response.json()
            except ValueError as e:
                raise GitHubError(f"pull request files JSON parse failed: {e}") from e
            if not isinstance(payload, list):
                raise GitHubError(f"unexpected pull request files payload: {type(payload).__name__}")

            files.extend(
                item["filename"]
                for item in payload
                if isinstance(item, dict) and "filename" in item
            )
            if len(payload) < FILES_PER_PAGE:
                break
        return files

    def fetch_pull_request_diff(self, repo: str, number: int) -> str:
        response = self._get(
            f"/repos/{repo}/pulls/{number}",
            accept="application/vnd.github.diff",
        )
        return response.text
