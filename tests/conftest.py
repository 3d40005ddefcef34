"""Shared fixtures: in-memory database and a fake GitHub Git Data API."""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass, field

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import remixhub.entities  # noqa: F401
from remix.github_client import GitHubClient
from remixhub.auth import hash_token
from remixhub.database import Base
from remixhub.entities.profile import Profile

GITHUB_TEST_BASE = "https://api.github.test"


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def create_profile(session_factory):
    async def _create(user_id: str = "user_1", credits: int = 5, token: str | None = None):
        async with session_factory() as db:
            db.add(Profile(
                user_id=user_id,
                display_name=user_id,
                credits=credits,
                api_token_hash=hash_token(token) if token else None,
            ))
            await db.commit()
        return user_id

    return _create


def _sha(*parts: str) -> str:
    return hashlib.sha1("\0".join(parts).encode()).hexdigest()


@dataclass
class FakeRepo:
    name: str
    branch: str
    read_tokens: set[str]
    write_tokens: set[str]
    head: str = ""
    blobs: dict[str, str] = field(default_factory=dict)
    trees: dict[str, list[dict]] = field(default_factory=dict)
    commits: dict[str, dict] = field(default_factory=dict)

    def current_tree(self) -> list[dict]:
        return self.trees[self.commits[self.head]["tree"]]

    def files(self) -> dict[str, str]:
        """path -> decoded content of the branch HEAD."""
        return {
            e["path"]: base64.b64decode(self.blobs[e["sha"]]).decode()
            for e in self.current_tree()
            if e["type"] == "blob"
        }


class FakeGitHubAPI:
    """Just enough of the GitHub Git Data API to run a remix against."""

    def __init__(self):
        self.repos: dict[str, FakeRepo] = {}
        self.calls: list[tuple[str, str, str]] = []  # (method, repo, kind)
        self.failures: dict[tuple[str, str, str], tuple[int, str]] = {}
        self.truncated: set[str] = set()

    def add_repo(
        self,
        name: str,
        files: dict[str, str],
        token: str,
        branch: str = "main",
        write: bool = True,
        modes: dict[str, str] | None = None,
    ) -> FakeRepo:
        repo = FakeRepo(
            name=name,
            branch=branch,
            read_tokens={token},
            write_tokens={token} if write else set(),
        )
        entries = []
        for path, content in files.items():
            encoded = base64.b64encode(content.encode()).decode()
            sha = _sha(name, "blob", encoded)
            repo.blobs[sha] = encoded
            entries.append({
                "path": path,
                "mode": (modes or {}).get(path, "100644"),
                "type": "blob",
                "sha": sha,
            })
        dirs = sorted({p.rsplit("/", 1)[0] for p in files if "/" in p})
        entries.extend({"path": d, "mode": "040000", "type": "tree", "sha": _sha(name, d)} for d in dirs)
        tree_sha = _sha(name, "tree", json.dumps(entries, sort_keys=True))
        repo.trees[tree_sha] = entries
        repo.head = _sha(name, "commit", tree_sha)
        repo.commits[repo.head] = {"tree": tree_sha, "parents": [], "message": "initial"}
        self.repos[name] = repo
        return repo

    def fail(self, method: str, repo: str, kind: str, status: int, body: str) -> None:
        self.failures[(method, repo, kind)] = (status, body)

    def count(self, method: str, kind: str, repo: str | None = None) -> int:
        return sum(
            1 for m, r, k in self.calls
            if m == method and k == kind and (repo is None or r == repo)
        )

    @staticmethod
    def _json(status: int, payload) -> httpx.Response:
        return httpx.Response(status, json=payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        repo_name = "/".join(parts[1:3])
        rest = parts[3:]
        kind = rest[1] if len(rest) > 1 else "repo"
        method = request.method
        self.calls.append((method, repo_name, kind))

        if (method, repo_name, kind) in self.failures:
            status, body = self.failures[(method, repo_name, kind)]
            return httpx.Response(status, text=body)

        repo = self.repos.get(repo_name)
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if repo is None or token not in repo.read_tokens:
            return self._json(404, {"message": "Not Found"})
        if method in ("POST", "PATCH") and token not in repo.write_tokens:
            return self._json(403, {"message": "Resource not accessible by personal access token"})

        body = json.loads(request.content) if request.content else {}

        if kind == "repo":
            return self._json(200, {"full_name": repo_name, "default_branch": repo.branch})

        if kind == "trees" and method == "GET":
            assert request.url.params.get("recursive") == "1"
            return self._json(200, {
                "sha": repo.commits[repo.head]["tree"],
                "tree": repo.current_tree(),
                "truncated": repo_name in self.truncated,
            })

        if kind == "trees" and method == "POST":
            assert "base_tree" not in body
            tree_sha = _sha(repo_name, "tree", json.dumps(body["tree"], sort_keys=True))
            repo.trees[tree_sha] = body["tree"]
            return self._json(201, {"sha": tree_sha})

        if kind == "refs" and method == "GET":
            return self._json(200, {"object": {"sha": repo.head, "type": "commit"}})

        if kind == "refs" and method == "PATCH":
            if not body.get("force") and repo.head not in repo.commits[body["sha"]]["parents"]:
                return self._json(422, {"message": "Update is not a fast forward"})
            repo.head = body["sha"]
            return self._json(200, {"object": {"sha": repo.head}})

        if kind == "blobs" and method == "GET":
            sha = rest[2]
            if sha not in repo.blobs:
                return self._json(404, {"message": "Not Found"})
            return self._json(200, {"sha": sha, "content": repo.blobs[sha], "encoding": "base64"})

        if kind == "blobs" and method == "POST":
            assert body["encoding"] == "base64"
            sha = _sha(repo_name, "blob", body["content"])
            repo.blobs[sha] = body["content"]
            return self._json(201, {"sha": sha})

        if kind == "commits" and method == "POST":
            sha = _sha(repo_name, "commit", body["tree"], *body["parents"], body["message"])
            repo.commits[sha] = body
            return self._json(201, {"sha": sha})

        return self._json(404, {"message": f"unhandled {method} {request.url.path}"})


@pytest.fixture
def github_api():
    return FakeGitHubAPI()


@pytest_asyncio.fixture
async def github_client(github_api):
    client = GitHubClient(
        api_base=GITHUB_TEST_BASE,
        transport=httpx.MockTransport(github_api.handler),
    )
    yield client
    await client.close()
