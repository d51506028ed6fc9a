"""Minimal GitHub REST client for repository listing and manifest access."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from ..errors import EnvScanError, PersistenceError


class GitHubError(EnvScanError):
    """Raised when the GitHub API returns an unexpected response."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class RemoteFile:
    """File contents fetched at a ref together with its blob sha."""

    path: str
    content: str
    sha: str


class GitHubClient:
    """Wraps the handful of REST endpoints the scanner needs."""

    API_URL = "https://api.github.com"
    PER_PAGE = 100

    def __init__(
        self,
        token: str,
        *,
        api_url: str | None = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.token = token
        self.api_url = (api_url or self.API_URL).rstrip("/")
        self.request_timeout = request_timeout

    def list_repositories(self, org: str) -> List[str]:
        """Return the names of every repository in ``org``."""
        names: List[str] = []
        page = 1
        while True:
            query = urlencode({"per_page": self.PER_PAGE, "page": page})
            payload = self._request("GET", f"/orgs/{quote(org)}/repos?{query}")
            if not isinstance(payload, list) or not payload:
                break
            names.extend(
                item["name"]
                for item in payload
                if isinstance(item, dict) and isinstance(item.get("name"), str)
            )
            if len(payload) < self.PER_PAGE:
                break
            page += 1
        return names

    def branch_exists(self, owner: str, repo: str, branch: str) -> bool:
        try:
            self._request(
                "GET", f"/repos/{quote(owner)}/{quote(repo)}/branches/{quote(branch, safe='')}"
            )
        except GitHubError as exc:
            if exc.status == 404:
                return False
            raise
        return True

    def get_file(self, owner: str, repo: str, path: str, *, ref: str) -> Optional[RemoteFile]:
        """Fetch a file at ``ref``; ``None`` when it does not exist."""
        query = urlencode({"ref": ref})
        try:
            payload = self._request(
                "GET", f"/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path)}?{query}"
            )
        except GitHubError as exc:
            if exc.status == 404:
                return None
            raise PersistenceError(f"Failed to read {repo}/{path}@{ref}: {exc}") from exc
        if not isinstance(payload, dict) or payload.get("encoding") != "base64":
            raise PersistenceError(f"Unexpected contents payload for {repo}/{path}")
        content = base64.b64decode(payload.get("content", "")).decode("utf-8")
        return RemoteFile(path=path, content=content, sha=str(payload.get("sha", "")))

    def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        *,
        ref: str,
        content: str,
        sha: Optional[str],
        message: str,
    ) -> None:
        """Create or update a file; ``sha`` guards against concurrent edits."""
        body: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": ref,
        }
        if sha:
            body["sha"] = sha
        try:
            self._request(
                "PUT", f"/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path)}", body
            )
        except GitHubError as exc:
            if exc.status in (409, 422):
                raise PersistenceError(
                    f"{repo}/{path} changed on {ref} since it was read"
                ) from exc
            raise PersistenceError(f"Failed to write {repo}/{path}@{ref}: {exc}") from exc

    def clone_url(self, owner: str, repo: str) -> str:
        return f"https://github.com/{owner}/{repo}.git"

    def _request(self, method: str, path: str, body: Dict[str, Any] | None = None) -> Any:
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        request = Request(f"{self.api_url}{path}", data=data, headers=headers, method=method)
        try:
            with urlopen(request, timeout=self.request_timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
            message = detail.strip() or str(exc.reason)
            raise GitHubError(
                f"GitHub {method} {path} failed with status {exc.code}: {message}",
                status=exc.code,
            ) from exc
        except URLError as exc:  # pragma: no cover - depends on network
            raise GitHubError(f"GitHub {method} {path} failed: {exc.reason}") from exc
        if not raw:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise GitHubError(f"GitHub {method} {path} returned invalid JSON") from exc


__all__ = ["GitHubClient", "GitHubError", "RemoteFile"]
