"""
Value types shared by the sync engine.

Everything here is created fresh per sync run and discarded at its end,
except SyncRunResult which is handed to the log store.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from app.exceptions import ValidationError


@dataclass(frozen=True)
class RepositoryRef:
    """A GitHub repository, ``owner/name``."""

    owner: str
    name: str

    def __post_init__(self) -> None:
        if not self.owner or not self.name:
            raise ValidationError("Repository owner and name are required")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name

    @classmethod
    def parse(cls, value: str) -> "RepositoryRef":
        """
        Parse ``owner/name`` or a GitHub URL.

        Examples:
            octo/repo -> RepositoryRef("octo", "repo")
            https://github.com/octo/repo.git -> RepositoryRef("octo", "repo")
        """
        text = (value or "").strip()
        if "://" in text:
            text = urlparse(text).path
        text = text.strip("/")
        if text.endswith(".git"):
            text = text[: -len(".git")]

        parts = text.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValidationError(f"Repository must be 'owner/name', got {value!r}")
        return cls(owner=parts[0], name=parts[1])


@dataclass(frozen=True)
class TreeEntry:
    """One file of a tree snapshot. Identity across snapshots is ``sha`` only."""

    path: str
    mode: str
    sha: str
    type: str = "blob"
    size: Optional[int] = None

    def to_api(self) -> Dict[str, str]:
        """Shape expected by ``POST /git/trees``."""
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


@dataclass(frozen=True)
class BranchHead:
    branch: str
    sha: str


class ResolutionOutcome(str, Enum):
    """How a branch head was found."""
    PREFERRED = "preferred"
    FALLBACK = "fallback"
    EMPTY = "empty"


@dataclass(frozen=True)
class BranchResolution:
    """
    Result of probing a repository for its head.

    ``branch`` is the branch to publish to: the one found, or the preferred
    name when the repository is empty.
    """

    outcome: ResolutionOutcome
    branch: str
    head: Optional[BranchHead] = None

    @property
    def is_empty(self) -> bool:
        return self.outcome is ResolutionOutcome.EMPTY


@dataclass
class SyncPlan:
    """Diff output: what to reuse, what to upload, what the mirror drops."""

    unchanged: List[TreeEntry] = field(default_factory=list)
    to_upload: List[TreeEntry] = field(default_factory=list)
    dropped: List[TreeEntry] = field(default_factory=list)


class FileStatus(str, Enum):
    OK = "ok"
    KEPT_OLD = "kept_old"
    SKIPPED = "skipped"


@dataclass
class FileResult:
    """Outcome of materializing one source file in the target."""

    status: FileStatus
    path: str
    entries: List[TreeEntry] = field(default_factory=list)
    error: Optional[str] = None
    fragmented: bool = False


@dataclass(frozen=True)
class SyncRunResult:
    """Immutable summary of one sync invocation."""

    success: bool
    files_processed: int
    duration_ms: int
    error: Optional[str] = None
    commit_sha: Optional[str] = None
    branch: Optional[str] = None
    files_unchanged: int = 0
    files_kept: int = 0
    files_skipped: int = 0
    files_dropped: int = 0
    fragmented_files: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "filesProcessed": self.files_processed,
            "durationMs": self.duration_ms,
            "error": self.error,
            "commitSha": self.commit_sha,
            "branch": self.branch,
            "filesUnchanged": self.files_unchanged,
            "filesKept": self.files_kept,
            "filesSkipped": self.files_skipped,
            "filesDropped": self.files_dropped,
            "fragmentedFiles": self.fragmented_files,
        }
