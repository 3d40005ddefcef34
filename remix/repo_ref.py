"""Parse GitHub repository references into ``owner/name`` identifiers."""

from __future__ import annotations

import re

from remix.errors import ValidationError

# Accepts https://github.com/owner/name(.git)(/...), github.com/owner/name, owner/name
_GITHUB_URL_RE = re.compile(
    r"^(?:(?:https?://)?(?:www\.)?github\.com/)?"
    r"(?P<owner>[A-Za-z0-9](?:[A-Za-z0-9-]{0,38}))/"
    r"(?P<name>[A-Za-z0-9._-]+?)"
    r"(?:\.git)?(?:/.*)?/?$"
)


def normalize_repo(value: str | None, label: str = "repositório") -> str:
    """Return ``owner/name`` for a GitHub URL or slug.

    Raises ValidationError when the value does not look like a GitHub
    repository reference.
    """
    raw = (value or "").strip()
    if not raw:
        raise ValidationError(f"Informe o {label}")

    if raw.startswith("git@github.com:"):
        raw = raw.removeprefix("git@github.com:")

    match = _GITHUB_URL_RE.match(raw)
    if not match:
        raise ValidationError(f"URL de {label} inválida: {raw}")

    name = match.group("name")
    if name in {".", ".."}:
        raise ValidationError(f"URL de {label} inválida: {raw}")
    return f"{match.group('owner')}/{name}"
