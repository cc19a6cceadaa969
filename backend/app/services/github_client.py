"""
GitHub REST / Git Data API client.

One explicit, authenticated session object per caller (no module-level
client). Wraps a single httpx.AsyncClient so connection pooling is shared by
all requests of a sync run.

Usage:
    async with GitHubClient(token) as github:
        sha = await github.get_branch_sha("octo", "repo", "main")
"""

import base64
import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import GITHUB_API_BASE, GITHUB_TIMEOUT_SECONDS
from app.exceptions import (
    AuthenticationError,
    ExternalServiceError,
    GitHubAPIError,
    GitHubNotFoundError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
REPOS_PER_PAGE = 100


class GitHubClient:
    """Authenticated GitHub API session."""

    def __init__(
        self,
        token: str,
        base_url: str = GITHUB_API_BASE,
        timeout: float = GITHUB_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Send a request and map failures onto app exceptions."""
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            logger.warning(f"GitHub API timeout: {method} {path}")
            raise ExternalServiceError("GitHub API", "timeout") from e
        except httpx.RequestError as e:
            logger.warning(f"GitHub API request failed: {method} {path}: {e}")
            raise ExternalServiceError("GitHub API", str(e) or type(e).__name__) from e

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            return response.json()

        self._raise_for_status(response)

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        reason = _error_message(response)

        if status == 401:
            raise AuthenticationError("GitHub token")
        if status == 429 or (
            status == 403 and response.headers.get("x-ratelimit-remaining") == "0"
        ):
            raise RateLimitError("GitHub API")
        if status == 404:
            raise GitHubNotFoundError(reason)
        raise GitHubAPIError(status, reason)

    # =========================================================================
    # Refs and branches
    # =========================================================================

    async def get_branch_sha(self, owner: str, repo: str, branch: str) -> Optional[str]:
        """
        Return the tip commit sha of a branch, or None if it does not exist.

        GitHub answers 404 for a missing branch and 409 for an empty
        repository; both mean "no such head".
        """
        try:
            data = await self._request("GET", f"/repos/{owner}/{repo}/branches/{branch}")
        except GitHubAPIError as e:
            if e.upstream_status in (404, 409):
                return None
            raise
        return data["commit"]["sha"]

    async def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> None:
        """Create a ref such as ``refs/heads/main``."""
        await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": ref, "sha": sha},
        )

    async def update_ref(
        self, owner: str, repo: str, ref: str, sha: str, force: bool = True
    ) -> None:
        """Move a ref such as ``heads/main`` to a new commit."""
        await self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/{ref}",
            json={"sha": sha, "force": force},
        )

    # =========================================================================
    # Git objects
    # =========================================================================

    async def get_tree(
        self, owner: str, repo: str, tree_sha: str, recursive: bool = True
    ) -> Dict[str, Any]:
        """Fetch a tree (a commit sha is accepted). Returns GitHub's payload."""
        params = {"recursive": "1"} if recursive else None
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/git/trees/{tree_sha}", params=params
        )

    async def get_blob(self, owner: str, repo: str, sha: str) -> bytes:
        """Fetch a blob's raw bytes."""
        data = await self._request("GET", f"/repos/{owner}/{repo}/git/blobs/{sha}")
        if data.get("encoding") == "base64":
            return base64.b64decode(data.get("content") or "")
        return (data.get("content") or "").encode("utf-8")

    async def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        """Upload bytes as a new blob and return its sha."""
        data = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={
                "content": base64.b64encode(content).decode("ascii"),
                "encoding": "base64",
            },
        )
        return data["sha"]

    async def create_tree(
        self,
        owner: str,
        repo: str,
        entries: List[Dict[str, Any]],
        base_tree: Optional[str] = None,
    ) -> str:
        payload: Dict[str, Any] = {"tree": entries}
        if base_tree:
            payload["base_tree"] = base_tree
        data = await self._request("POST", f"/repos/{owner}/{repo}/git/trees", json=payload)
        return data["sha"]

    async def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: List[str]
    ) -> str:
        data = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )
        return data["sha"]

    # =========================================================================
    # Account and repositories
    # =========================================================================

    async def get_authenticated_user(self) -> Dict[str, Any]:
        return await self._request("GET", "/user")

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        return await self._request("GET", f"/repos/{owner}/{repo}")

    async def list_repositories(self, visibility: Optional[str] = None) -> List[Dict[str, Any]]:
        """List repositories the token can access, following pagination."""
        repos: List[Dict[str, Any]] = []
        page = 1

        while True:
            params: Dict[str, Any] = {
                "per_page": REPOS_PER_PAGE,
                "page": page,
                "sort": "updated",
            }
            if visibility:
                params["visibility"] = visibility

            batch = await self._request("GET", "/user/repos", params=params)
            if not batch:
                break
            repos.extend(batch)
            if len(batch) < REPOS_PER_PAGE:
                break
            page += 1

        logger.info(f"Listed {len(repos)} repositories")
        return repos


def _error_message(response: httpx.Response) -> Optional[str]:
    """Pull GitHub's ``message`` field out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        return body.get("message")
    return None


async def validate_token(
    token: str,
    base_url: str = GITHUB_API_BASE,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    Check a personal access token against ``GET /user``.

    Returns:
        {"valid": True, "username": login} or {"valid": False, "error": msg}
    """
    async with GitHubClient(token, base_url=base_url, timeout=10.0, transport=transport) as github:
        try:
            user = await github.get_authenticated_user()
        except AuthenticationError:
            return {"valid": False, "error": "Invalid token"}
        except RateLimitError:
            return {"valid": False, "error": "GitHub API rate limit exceeded"}
        except GitHubAPIError as e:
            if e.upstream_status == 403:
                return {"valid": False, "error": "Token lacks required permissions"}
            return {"valid": False, "error": f"GitHub API returned status {e.upstream_status}"}

    return {"valid": True, "username": user.get("login")}
