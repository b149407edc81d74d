"""
GitHub REST client: the remote source of action metadata.

Only three lookups are needed to pin an action:
  1. list the repository's tags (name + commit SHA)
  2. get the head commit of a branch
  3. resolve a single tag ref, dereferencing annotated tags

A 404 raises NotFound. Everything else that goes wrong (network errors,
timeouts, bad credentials, rate limiting, server errors) raises
TransportOrAuthFailure so callers can tell a definitive "no such ref"
apart from "could not ask".
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx

from gha_pin import __version__
from gha_pin.errors import NotFound, TransportOrAuthFailure

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 10.0
TAGS_PER_PAGE = 100
USER_AGENT = f"gha-pin/{__version__}"


@dataclass(frozen=True)
class Tag:
    """A repository tag as returned by the tags listing."""
    name: str
    commit_sha: str


class GitHubClient:
    """Synchronous GitHub API client backed by a single httpx.Client."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        t0 = time.monotonic()
        try:
            response = self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise TransportOrAuthFailure(f"GitHub API request timed out: GET {path}") from e
        except httpx.HTTPError as e:
            raise TransportOrAuthFailure(f"GitHub API request failed: GET {path}: {e}") from e

        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.debug("GET %s -> %d in %.0fms", path, response.status_code, elapsed_ms)

        if response.status_code == 404:
            raise NotFound(f"Not found: GET {path}")
        if response.status_code >= 400:
            raise TransportOrAuthFailure(
                _error_message(response, path), status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportOrAuthFailure(f"Invalid JSON from GitHub API: GET {path}") from e

    def list_tags(self, owner: str, repo: str) -> list[Tag]:
        """Return the first page of tags in GitHub's own ordering."""
        data = self._get(
            f"/repos/{owner}/{repo}/tags", params={"per_page": TAGS_PER_PAGE},
        )
        if not isinstance(data, list):
            raise TransportOrAuthFailure(f"Unexpected tags response for {owner}/{repo}")
        tags = [
            Tag(name=item["name"], commit_sha=item["commit"]["sha"])
            for item in data
            if isinstance(item, dict) and item.get("name") and isinstance(item.get("commit"), dict)
        ]
        logger.debug("Listed %d tag(s) for %s/%s", len(tags), owner, repo)
        return tags

    def get_branch_head(self, owner: str, repo: str, branch: str) -> str:
        """Return the commit SHA at the head of a branch."""
        path = f"/repos/{owner}/{repo}/branches/{quote(branch, safe='')}"
        data = self._get(path)
        try:
            return data["commit"]["sha"]
        except (KeyError, TypeError) as e:
            raise TransportOrAuthFailure(f"Unexpected response shape: GET {path}") from e

    def get_tag_ref(self, owner: str, repo: str, tag: str) -> str:
        """Return the commit SHA a tag points at, following annotated tags."""
        path = f"/repos/{owner}/{repo}/git/ref/tags/{quote(tag, safe='')}"
        try:
            obj = self._get(path)["object"]
            # Annotated tags point at a tag object, which in turn points at the commit
            while obj.get("type") == "tag":
                path = f"/repos/{owner}/{repo}/git/tags/{obj['sha']}"
                obj = self._get(path)["object"]
            return obj["sha"]
        except (KeyError, TypeError, AttributeError) as e:
            raise TransportOrAuthFailure(f"Unexpected response shape: GET {path}") from e


def _error_message(response: httpx.Response, path: str) -> str:
    status = response.status_code
    try:
        body = response.json()
        detail = body.get("message", "") if isinstance(body, dict) else ""
    except ValueError:
        detail = response.text[:200]

    if status == 401:
        return f"GitHub rejected the credential (401): {detail}"
    if status in (403, 429) and response.headers.get("x-ratelimit-remaining") == "0":
        return f"GitHub API rate limit exceeded ({status}): {detail}"
    return f"GitHub API error {status} for GET {path}: {detail}"
