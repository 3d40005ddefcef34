"""GitHub Git Data API client: trees, blobs, commits and refs.

Every call is scoped to the token passed in, so one client instance serves
both sides of a remix (read with the source token, write with the target
token). Failures are never retried here; they surface as UpstreamError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from remix.errors import TreeTruncatedError, UpstreamError
from remixhub.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeEntry:
    path: str
    mode: str
    sha: str
    type: str = "blob"

    def as_payload(self) -> dict[str, str]:
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


class GitHubClient:
    """Thin async wrapper over the GitHub REST v3 Git Data endpoints."""

    def __init__(
        self,
        api_base: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_base = (api_base or settings.github_api_base).rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.github_timeout_seconds,
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @staticmethod
    def _headers(token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github.v3+json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        **kwargs,
    ) -> Any:
        """Execute one authenticated call and return the decoded JSON body."""
        url = f"{self.api_base}{path}"
        try:
            resp = await self._client.request(
                method, url, headers=self._headers(token), **kwargs
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            logger.warning("%s on %s %s", type(exc).__name__, method, url)
            raise UpstreamError(0, f"{type(exc).__name__} on {method} {path}") from exc

        if resp.status_code >= 400:
            logger.info("GitHub %s %s -> %d", method, path, resp.status_code)
            raise UpstreamError(resp.status_code, resp.text)
        if not resp.content:
            return {}
        return resp.json()

    async def get_default_branch(self, repo: str, token: str) -> str:
        data = await self._request("GET", f"/repos/{repo}", token)
        return data["default_branch"]

    async def list_tree(self, repo: str, branch: str, token: str) -> list[TreeEntry]:
        """Recursive listing of ``branch``, blob entries only.

        Directories and submodules are dropped. A truncated listing is an
        error: copying it would silently lose files.
        """
        data = await self._request(
            "GET",
            f"/repos/{repo}/git/trees/{branch}",
            token,
            params={"recursive": "1"},
        )
        if data.get("truncated"):
            raise TreeTruncatedError(
                200,
                f"tree listing for {repo}@{branch} was truncated by GitHub "
                f"({len(data.get('tree', []))} entries returned)",
            )
        return [
            TreeEntry(path=item["path"], mode=item["mode"], sha=item["sha"])
            for item in data.get("tree", [])
            if item.get("type") == "blob"
        ]

    async def get_ref(self, repo: str, branch: str, token: str) -> str:
        data = await self._request("GET", f"/repos/{repo}/git/refs/heads/{branch}", token)
        return data["object"]["sha"]

    async def get_blob_content(self, repo: str, sha: str, token: str) -> str:
        """Return the blob's content, base64-encoded as GitHub serves it."""
        data = await self._request("GET", f"/repos/{repo}/git/blobs/{sha}", token)
        return data["content"]

    async def create_blob(self, repo: str, content_b64: str, token: str) -> str:
        data = await self._request(
            "POST",
            f"/repos/{repo}/git/blobs",
            token,
            json={"content": content_b64, "encoding": "base64"},
        )
        return data["sha"]

    async def create_tree(self, repo: str, entries: list[TreeEntry], token: str) -> str:
        # No base_tree: the new tree holds exactly ``entries``, so every file
        # of the target that is not in the list disappears from the commit.
        data = await self._request(
            "POST",
            f"/repos/{repo}/git/trees",
            token,
            json={"tree": [entry.as_payload() for entry in entries]},
        )
        return data["sha"]

    async def create_commit(
        self,
        repo: str,
        message: str,
        tree_sha: str,
        parent_shas: list[str],
        token: str,
    ) -> str:
        data = await self._request(
            "POST",
            f"/repos/{repo}/git/commits",
            token,
            json={"message": message, "tree": tree_sha, "parents": parent_shas},
        )
        return data["sha"]

    async def update_ref(
        self,
        repo: str,
        branch: str,
        sha: str,
        token: str,
        force: bool = True,
    ) -> None:
        await self._request(
            "PATCH",
            f"/repos/{repo}/git/refs/heads/{branch}",
            token,
            json={"sha": sha, "force": force},
        )
