"""Canonical identity of fetchable and cacheable forge resources."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

from grit.core.models.enums import MutationKind, ResourceKind

_UNSAFE_CHARS = re.compile(r"[^a-z0-9._-]+")


def normalize_provider(provider: str) -> str:
    return provider.strip().lower()


def normalize_repo(repo: str) -> str:
    """Normalize ``owner/name`` so URL-ish variants compare equal."""
    value = repo.strip().strip("/").lower()
    if value.endswith(".git"):
        value = value[: -len(".git")]
    return value


def normalize_number(kind: ResourceKind, number: int | str | None) -> str | None:
    if number is None:
        return None
    value = str(number).strip()
    if kind is ResourceKind.COMMIT:
        value = value.lower()
    elif value.startswith("#"):
        value = value[1:]
    return value or None


@dataclass(frozen=True, slots=True)
class ResourceKey:
    """(provider, repository, kind, number) identity of one remote object.

    Components are normalized on construction, so two keys are equal iff they
    denote the same remote object no matter which adapter produced them.
    """

    provider: str
    repo: str
    kind: ResourceKind
    number: str | None = None

    def __post_init__(self) -> None:
        kind = ResourceKind(self.kind)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "provider", normalize_provider(self.provider))
        repo = normalize_repo(self.repo) if kind.is_repo_scoped else ""
        object.__setattr__(self, "repo", repo)
        number = normalize_number(kind, self.number) if kind.is_numbered else None
        object.__setattr__(self, "number", number)
        if not self.provider:
            msg = "ResourceKey requires a provider id"
            raise ValueError(msg)
        if kind.is_repo_scoped and "/" not in repo:
            msg = f"ResourceKey of kind {kind} requires an owner/name repo, got {self.repo!r}"
            raise ValueError(msg)
        if kind.is_numbered and number is None:
            msg = f"ResourceKey of kind {kind} requires a number"
            raise ValueError(msg)

    @property
    def owner(self) -> str:
        return self.repo.partition("/")[0]

    @property
    def name(self) -> str:
        return self.repo.partition("/")[2]

    @property
    def item_number(self) -> int:
        """Integer form of ``number`` for PR/issue-scoped kinds."""
        if self.number is None:
            msg = f"{self} has no number"
            raise ValueError(msg)
        return int(self.number)

    def sibling(self, kind: ResourceKind, number: int | str | None = None) -> ResourceKey:
        """Key of another resource in the same repository."""
        if number is None and kind.is_numbered:
            number = self.number
        return ResourceKey(self.provider, self.repo, kind, number)

    def slug(self) -> str:
        """Filesystem-safe record name, unique per key."""
        parts = [self.provider, self.repo.replace("/", "_"), self.kind.value]
        if self.number is not None:
            parts.append(self.number)
        readable = _UNSAFE_CHARS.sub("-", "_".join(p for p in parts if p))[:120]
        digest = hashlib.sha1(repr(self.as_tuple()).encode("utf-8")).hexdigest()[:10]
        return f"{readable}.{digest}"

    def as_tuple(self) -> tuple[str, str, str, str | None]:
        return (self.provider, self.repo, self.kind.value, self.number)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "provider": self.provider,
            "repo": self.repo,
            "kind": self.kind.value,
            "number": self.number,
        }

    def __str__(self) -> str:
        location = f"{self.provider}:{self.repo}" if self.repo else self.provider
        suffix = f"#{self.number}" if self.number is not None else ""
        return f"{location}/{self.kind.value}{suffix}"

    # -- constructors ------------------------------------------------------

    @classmethod
    def home(cls, provider: str) -> ResourceKey:
        return cls(provider, "", ResourceKind.HOME)

    @classmethod
    def repos(cls, provider: str) -> ResourceKey:
        return cls(provider, "", ResourceKind.REPOS)

    @classmethod
    def pr(cls, provider: str, repo: str, number: int | str) -> ResourceKey:
        return cls(provider, repo, ResourceKind.PR, str(number))

    @classmethod
    def issue(cls, provider: str, repo: str, number: int | str) -> ResourceKey:
        return cls(provider, repo, ResourceKind.ISSUE, str(number))

    @classmethod
    def commit(cls, provider: str, repo: str, sha: str) -> ResourceKey:
        return cls(provider, repo, ResourceKind.COMMIT, sha)

    @classmethod
    def listing(cls, provider: str, repo: str, kind: ResourceKind) -> ResourceKey:
        return cls(provider, repo, kind)


def invalidation_targets(key: ResourceKey, mutation: MutationKind) -> tuple[ResourceKey, ...]:
    """Keys whose cached values a successful mutation on ``key`` makes wrong."""
    home = ResourceKey.home(key.provider)
    match mutation:
        case MutationKind.MERGE_PR | MutationKind.CLOSE_PR:
            targets = (
                key.sibling(ResourceKind.PR),
                key.sibling(ResourceKind.PR_LIST),
                key.sibling(ResourceKind.CHECKS),
                home,
            )
        case MutationKind.CLOSE_ISSUE:
            targets = (
                key.sibling(ResourceKind.ISSUE),
                key.sibling(ResourceKind.ISSUE_LIST),
            )
        case MutationKind.COMMENT:
            targets = (key.sibling(ResourceKind.COMMENTS), key)
        case MutationKind.SUBMIT_REVIEW:
            targets = (
                key.sibling(ResourceKind.PR),
                key.sibling(ResourceKind.COMMENTS),
                home,
            )
        case _:
            targets = (key,)
    return tuple(dict.fromkeys(targets))
