"""GitHub Git Data API client."""

import base64
import logging
import os
import subprocess
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from .models import GitBlob, GitCommit, GitRef, GitTree, NewTreeItem, PullRequest

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds


class GitHubError(Exception):
    """GitHub API answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubServerError(GitHubError):
    """5xx answer, retried."""


# Retryable exceptions
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.NetworkError,
    GitHubServerError,
)


def get_token_from_gh_cli() -> str | None:
    """
    Get GitHub token from gh cli.

    Returns:
        Token string or None if gh cli not available/authenticated
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("Using token from gh cli")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug("gh cli not available: %s", e)
    return None


def get_token(token: str | None = None, use_gh_cli: bool = False) -> str | None:
    """
    Get GitHub token from various sources.

    Priority:
    1. Explicitly provided token
    2. Environment variable GH_TOKEN / GITHUB_TOKEN
    3. gh cli (`gh auth token`) - only if use_gh_cli=True

    Args:
        token: Explicitly provided token
        use_gh_cli: Whether to use gh cli credentials (requires user consent)

    Returns:
        GitHub token or None
    """
    if token:
        logger.debug("Using explicitly provided token")
        return token

    env_token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if env_token:
        logger.info("Using token from environment variable")
        return env_token

    if use_gh_cli:
        return get_token_from_gh_cli()

    return None


def create_retry_decorator(max_retries: int = DEFAULT_MAX_RETRIES):
    """Create a retry decorator with specified max retries."""
    return retry(
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=1, min=DEFAULT_MIN_WAIT, max=DEFAULT_MAX_WAIT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class GitHubClient:
    """Async GitHub REST client for git objects, refs and pull requests."""

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        use_gh_cli: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub personal access token (optional)
            base_url: Custom base URL (defaults to GitHub API)
            timeout: Request timeout in seconds
            use_gh_cli: Use gh cli credentials (requires user consent)
            max_retries: Maximum number of retry attempts (default: 3)
            transport: Custom httpx transport (mainly for tests)
        """
        self.base_url = base_url or self.BASE_URL
        self.timeout = timeout
        self.max_retries = max_retries
        self.transport = transport
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "treesync-github-client",
        }

        resolved_token = get_token(token, use_gh_cli=use_gh_cli)

        if resolved_token:
            self.headers["Authorization"] = f"token {resolved_token}"
            logger.debug("GitHub client initialized with token")
        else:
            logger.warning("GitHub client initialized without token (rate limited, read only)")
        logger.info("GitHub client ready, base_url=%s, max_retries=%d", self.base_url, max_retries)

    async def _request(
        self,
        method: str,
        endpoint: str,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> httpx.Response | None:
        """Make HTTP request to GitHub API with retry.

        Returns None on 404 when ``allow_not_found`` is set.
        """
        url = f"{self.base_url}{endpoint}"

        @create_retry_decorator(self.max_retries)
        async def do_request() -> httpx.Response | None:
            logger.debug("Request: %s %s", method, url)
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=self.headers, transport=self.transport
            ) as client:
                response = await client.request(method, url, **kwargs)
            logger.debug(
                "Response: %s %s (status=%d)",
                method,
                endpoint,
                response.status_code,
            )
            if response.status_code >= 500:
                logger.warning("Server error %d, will retry", response.status_code)
                raise GitHubServerError(
                    f"Server error {response.status_code} for {method} {endpoint}",
                    response.status_code,
                )
            if response.status_code == 404 and allow_not_found:
                logger.debug("Not found: %s %s", method, endpoint)
                return None
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise GitHubError(
                    f"{method} {endpoint} failed: {response.status_code} {response.text}",
                    response.status_code,
                ) from e
            return response

        return await do_request()

    async def get_branch_head(self, owner: str, repo: str, branch: str) -> GitCommit | None:
        """
        Get the commit a branch points to.

        Args:
            owner: Repository owner
            repo: Repository name
            branch: Branch name

        Returns:
            GitCommit or None if the branch does not exist
        """
        logger.info("Fetching branch head: %s/%s branch=%s", owner, repo, branch)
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}", allow_not_found=True
        )
        if response is None:
            return None
        ref = GitRef(**response.json())
        return await self.get_commit(owner, repo, ref.object.sha)

    async def get_commit(self, owner: str, repo: str, sha: str) -> GitCommit | None:
        """Get a commit by sha."""
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/git/commits/{sha}", allow_not_found=True
        )
        if response is None:
            return None
        return GitCommit(**response.json())

    async def get_tree(self, owner: str, repo: str, sha: str) -> GitTree | None:
        """
        Get a tree listing by sha.

        Args:
            owner: Repository owner
            repo: Repository name
            sha: Tree sha

        Returns:
            GitTree or None if unknown to the repository
        """
        logger.debug("Fetching tree: %s/%s sha=%s", owner, repo, sha)
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/git/trees/{sha}", allow_not_found=True
        )
        if response is None:
            return None
        tree = GitTree(**response.json())
        if tree.truncated:
            logger.warning("Tree listing truncated: %s/%s sha=%s", owner, repo, sha)
        return tree

    async def get_blob(self, owner: str, repo: str, sha: str) -> GitBlob | None:
        """Get a blob by sha."""
        logger.debug("Fetching blob: %s/%s sha=%s", owner, repo, sha)
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/git/blobs/{sha}", allow_not_found=True
        )
        if response is None:
            return None
        return GitBlob(**response.json())

    async def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        """
        Upload blob content.

        Args:
            owner: Repository owner
            repo: Repository name
            content: Raw file content

        Returns:
            Sha of the created blob
        """
        logger.info("Creating blob: %s/%s (%d bytes)", owner, repo, len(content))
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"},
        )
        return response.json()["sha"]

    async def create_tree(self, owner: str, repo: str, items: list[NewTreeItem]) -> str:
        """Create a tree from a complete entry list, return its sha."""
        logger.info("Creating tree: %s/%s (%d entries)", owner, repo, len(items))
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/trees",
            json={"tree": [item.model_dump() for item in items]},
        )
        return response.json()["sha"]

    async def create_commit(
        self, owner: str, repo: str, message: str, tree: str, parents: list[str]
    ) -> str:
        """Create a commit, return its sha."""
        logger.info("Creating commit: %s/%s tree=%s", owner, repo, tree)
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )
        return response.json()["sha"]

    async def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> GitRef:
        """Create a reference (e.g. ``refs/heads/name``)."""
        logger.info("Creating ref: %s/%s %s -> %s", owner, repo, ref, sha)
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": ref, "sha": sha},
        )
        return GitRef(**response.json())

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str | None = None,
    ) -> PullRequest:
        """Open a pull request of ``head`` into ``base``."""
        logger.info("Creating pull request: %s/%s %s -> %s", owner, repo, head, base)
        payload: dict[str, Any] = {"title": title, "head": head, "base": base}
        if body:
            payload["body"] = body
        response = await self._request("POST", f"/repos/{owner}/{repo}/pulls", json=payload)
        return PullRequest(**response.json())

    async def add_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> None:
        """Add labels to an issue or pull request."""
        logger.info("Adding labels to %s/%s#%d: %s", owner, repo, number, ", ".join(labels))
        await self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{number}/labels",
            json={"labels": labels},
        )
