"""Repository identifiers and reconciliation records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


@dataclass(frozen=True, order=True)
class RepoId:
    """A two-segment ``owner/name`` repository identifier.

    The identifier is the key shared by a source repository, its deployment
    directory and any pending reconciliation request.
    """

    owner: str
    name: str

    def __post_init__(self) -> None:
        for segment in (self.owner, self.name):
            if not segment or segment in (".", "..") or "/" in segment or "\\" in segment:
                raise ValueError(f"Invalid repository identifier: {self.owner}/{self.name}")
        if self.name.endswith(".git"):
            raise ValueError(f"Repository identifier must not carry a .git suffix: {self.owner}/{self.name}")

    @classmethod
    def parse(cls, text: str) -> "RepoId":
        """Parse ``owner/name``. Raises ValueError for anything else."""
        owner, sep, name = text.partition("/")
        if not sep:
            raise ValueError(f"Invalid repository identifier: {text!r}")
        return cls(owner, name)

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


class SyncAction(Enum):
    """What a reconciliation pass did for one repository."""

    DEPLOYED = "deployed"
    REMOVED = "removed"
    KEPT = "kept"  # Deployment already valid, left for the refresh pass
    SKIPPED = "skipped"  # No publish branch, nothing to deploy
    FAILED = "failed"


@dataclass(frozen=True)
class SyncRequest:
    """A unit of reconciliation work: everything, or one repository."""

    repo: RepoId | None = None

    @property
    def is_full(self) -> bool:
        return self.repo is None


@dataclass
class SyncEntry:
    repo: RepoId
    action: SyncAction
    detail: str = ""


@dataclass
class SyncReport:
    """In-memory record of one reconciliation pass."""

    request: SyncRequest
    entries: list[SyncEntry] = field(default_factory=list)
    started_at: str = ""
    finished_at: str = ""
    error: str = ""

    def __post_init__(self) -> None:
        if not self.started_at:
            self.started_at = datetime.now(timezone.utc).isoformat()

    def add(self, repo: RepoId, action: SyncAction, detail: str = "") -> None:
        self.entries.append(SyncEntry(repo=repo, action=action, detail=detail))

    def finish(self, error: str = "") -> None:
        self.error = error
        self.finished_at = datetime.now(timezone.utc).isoformat()

    def actions_for(self, repo: RepoId) -> list[SyncAction]:
        return [e.action for e in self.entries if e.repo == repo]

    def count(self, action: SyncAction) -> int:
        return sum(1 for e in self.entries if e.action == action)

    @property
    def ok(self) -> bool:
        return not self.error and self.count(SyncAction.FAILED) == 0

    def summary(self) -> str:
        kind = "full sync" if self.request.is_full else f"sync {self.request.repo}"
        if self.error:
            return f"{kind}: aborted ({self.error})"
        counts = ", ".join(
            f"{self.count(a)} {a.value}" for a in SyncAction if self.count(a)
        )
        return f"{kind}: {counts or 'nothing to do'}"


@dataclass
class RepoStatus:
    """Read-only view of one identifier across both trees."""

    repo: RepoId
    has_source: bool
    branch_state: str
    deployed: bool

    @property
    def in_sync(self) -> bool:
        return self.deployed == (self.has_source and self.branch_state == "present")
