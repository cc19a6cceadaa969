"""
Atomic repository sync over the Git Data API.

Copies the full file tree of a source repository into a target branch as a
single new commit:

1. listing  - resolve both heads, flatten both trees, diff them
2. copying  - upload new/changed blobs in bounded concurrent batches
              (oversized files are written as .partNNN fragments)
3. build the tree, create the commit
4. publish  - create or force-move the branch ref

Nothing is visible in the target's history until step 4, which is a single
ref write. Failures before it leave the target branch exactly as it was.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from app.core.config import SYNC_BATCH_SIZE, SYNC_RUN_TIMEOUT_SECONDS
from app.exceptions import AppException, EmptyRepositoryError
from app.services.github_client import GitHubClient

from .blobs import BlobStore, git_blob_sha
from .branches import DEFAULT_BRANCH, BranchResolver
from .diff import compute_sync_set
from .fragmentation import MAX_BLOB_SIZE, fragment, parse_part_path, part_path, should_fragment
from .models import (
    BranchResolution,
    FileResult,
    FileStatus,
    RepositoryRef,
    SyncRunResult,
    TreeEntry,
)
from .progress import ProgressCallback, ProgressReporter, SyncStep, copy_percentage
from .trees import TreeBuilder

logger = logging.getLogger(__name__)


@dataclass
class _PreparedCommit:
    """Everything computed before the publish step."""

    commit_sha: str
    branch: str
    is_initial: bool
    files_processed: int
    files_unchanged: int
    files_kept: int
    files_skipped: int
    files_dropped: int
    fragmented_files: int


class RepositorySyncEngine:
    """
    One-way mirror of a source repository into a target branch.

    An engine holds no per-run state, so one instance may serve several
    concurrent runs against different targets.
    """

    def __init__(
        self,
        github: GitHubClient,
        batch_size: int = SYNC_BATCH_SIZE,
        fragment_threshold: int = MAX_BLOB_SIZE,
        run_timeout: Optional[float] = SYNC_RUN_TIMEOUT_SECONDS,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.github = github
        self.batch_size = batch_size
        self.fragment_threshold = fragment_threshold
        self.run_timeout = run_timeout

    # =========================================================================
    # Main Entry Point
    # =========================================================================

    async def sync(
        self,
        source: RepositoryRef,
        target: RepositoryRef,
        on_progress: Optional[ProgressCallback] = None,
        target_branch: str = DEFAULT_BRANCH,
    ) -> SyncRunResult:
        """
        Mirror ``source`` into ``target``.

        Never raises for run failures: they come back as a result with
        ``success=False`` after an ``error`` progress event.
        """
        started = time.monotonic()
        progress = ProgressReporter(on_progress)

        try:
            prepared = await asyncio.wait_for(
                self._prepare(source, target, target_branch, progress),
                timeout=self.run_timeout,
            )
            await self._publish(target, prepared)
        except asyncio.TimeoutError:
            return self._fail(
                progress, started, f"Sync timed out after {self.run_timeout:.0f}s"
            )
        except Exception as e:
            logger.error(f"Sync {source} -> {target} failed: {e}", exc_info=True)
            return self._fail(progress, started, _describe_error(e))

        duration_ms = _elapsed_ms(started)
        progress.emit(
            SyncStep.COMPLETED,
            f"Sync completed: {prepared.files_processed} files updated",
            files_processed=prepared.files_processed,
            total_files=prepared.files_processed,
            percentage=100,
        )
        logger.info(
            f"Synced {source} -> {target}@{prepared.branch} as {prepared.commit_sha[:7]}: "
            f"{prepared.files_processed} processed, {prepared.files_unchanged} unchanged, "
            f"{prepared.files_kept} kept, {prepared.files_skipped} skipped, "
            f"{prepared.files_dropped} dropped in {duration_ms}ms"
        )
        return SyncRunResult(
            success=True,
            files_processed=prepared.files_processed,
            duration_ms=duration_ms,
            commit_sha=prepared.commit_sha,
            branch=prepared.branch,
            files_unchanged=prepared.files_unchanged,
            files_kept=prepared.files_kept,
            files_skipped=prepared.files_skipped,
            files_dropped=prepared.files_dropped,
            fragmented_files=prepared.fragmented_files,
        )

    # =========================================================================
    # Listing, Copying, Tree and Commit
    # =========================================================================

    async def _prepare(
        self,
        source: RepositoryRef,
        target: RepositoryRef,
        target_branch: str,
        progress: ProgressReporter,
    ) -> _PreparedCommit:
        progress.emit(SyncStep.LISTING, "Resolving repository heads...", percentage=5)

        resolver = BranchResolver(self.github)
        source_head = await resolver.resolve(source)
        if source_head.is_empty:
            raise EmptyRepositoryError(source.full_name)
        target_head = await resolver.resolve(target, preferred=target_branch)

        source_entries = await self._trees(source).flatten(source_head.head.sha)
        target_entries: List[TreeEntry] = []
        if not target_head.is_empty:
            target_entries = await self._trees(target).flatten(target_head.head.sha)

        plan = compute_sync_set(source_entries, target_entries)
        source_paths = {entry.path for entry in source_entries}
        total = len(plan.to_upload)
        progress.emit(
            SyncStep.LISTING,
            f"{total} files to copy, {len(plan.unchanged)} unchanged",
            total_files=total,
            percentage=10,
        )

        results = await self._copy_files(
            plan.to_upload, source, target, target_entries, source_paths, progress
        )
        final_entries = _final_tree(plan.unchanged, results, source_paths)

        progress.emit(
            SyncStep.COPYING, "Building file tree...",
            files_processed=total, total_files=total, percentage=90,
        )
        tree_sha = await self._trees(target).build(final_entries)

        progress.emit(
            SyncStep.COPYING, "Creating commit...",
            files_processed=total, total_files=total, percentage=95,
        )
        parents = [] if target_head.is_empty else [target_head.head.sha]
        commit_sha = await self.github.create_commit(
            target.owner,
            target.name,
            _commit_message(source, source_head),
            tree_sha,
            parents,
        )

        final_paths = {entry.path for entry in final_entries}
        return _PreparedCommit(
            commit_sha=commit_sha,
            branch=target_head.branch,
            is_initial=target_head.is_empty,
            files_processed=total,
            files_unchanged=len(plan.unchanged),
            files_kept=sum(1 for r in results if r.status is FileStatus.KEPT_OLD),
            files_skipped=sum(1 for r in results if r.status is FileStatus.SKIPPED),
            files_dropped=sum(1 for e in plan.dropped if e.path not in final_paths),
            fragmented_files=sum(1 for r in results if r.fragmented),
        )

    async def _copy_files(
        self,
        entries: List[TreeEntry],
        source: RepositoryRef,
        target: RepositoryRef,
        target_entries: List[TreeEntry],
        source_paths: Set[str],
        progress: ProgressReporter,
    ) -> List[FileResult]:
        """Upload ``entries`` batch by batch; each batch is awaited fully."""
        source_blobs = BlobStore(self.github, source)
        target_blobs = BlobStore(self.github, target)
        target_by_path = {entry.path: entry for entry in target_entries}
        fragments = _previous_fragments(target_entries, source_paths)

        results: List[FileResult] = []
        total = len(entries)

        for start in range(0, total, self.batch_size):
            batch = entries[start:start + self.batch_size]
            batch_results = await asyncio.gather(*[
                self._materialize(
                    entry, source_blobs, target_blobs,
                    self._previous_version(entry, target_by_path, fragments),
                    target_by_path,
                )
                for entry in batch
            ])

            for result in batch_results:
                results.append(result)
                progress.emit(
                    SyncStep.COPYING,
                    _file_message(result),
                    files_processed=len(results),
                    total_files=total,
                    percentage=copy_percentage(len(results), total),
                )

        return results

    def _previous_version(
        self,
        entry: TreeEntry,
        target_by_path: Dict[str, TreeEntry],
        fragments: Dict[str, List[TreeEntry]],
    ) -> List[TreeEntry]:
        """
        What the target holds for ``entry``: the file at the same path, or
        the parts of an earlier fragmented copy. Parts only count when the
        source file is itself over the fragment threshold.
        """
        existing = target_by_path.get(entry.path)
        if existing is not None:
            return [existing]
        if (entry.size or 0) > self.fragment_threshold:
            return fragments.get(entry.path, [])
        return []

    async def _materialize(
        self,
        entry: TreeEntry,
        source_blobs: BlobStore,
        target_blobs: BlobStore,
        previous: List[TreeEntry],
        target_by_path: Dict[str, TreeEntry],
    ) -> FileResult:
        """Copy one file into the target. Never raises on per-file failure."""
        try:
            content = await source_blobs.read(entry.sha)

            if should_fragment(len(content), self.fragment_threshold):
                parts = await self._upload_parts(entry, content, target_blobs, target_by_path)
                logger.info(f"Fragmented {entry.path} ({len(content)} bytes) into {len(parts)} parts")
                return FileResult(FileStatus.OK, entry.path, parts, fragmented=True)

            new_sha = await target_blobs.write(content)
            return FileResult(
                FileStatus.OK,
                entry.path,
                [TreeEntry(entry.path, entry.mode, new_sha, size=len(content))],
            )

        except Exception as e:
            error = _describe_error(e)
            if previous:
                logger.warning(f"Keeping previous version of {entry.path}: {error}")
                return FileResult(FileStatus.KEPT_OLD, entry.path, list(previous), error=error)
            logger.warning(f"Skipping new file {entry.path}: {error}")
            return FileResult(FileStatus.SKIPPED, entry.path, error=error)

    async def _upload_parts(
        self,
        entry: TreeEntry,
        content: bytes,
        target_blobs: BlobStore,
        target_by_path: Dict[str, TreeEntry],
    ) -> List[TreeEntry]:
        """Write each chunk as its own blob; the original path is not emitted."""
        chunks = fragment(content, self.fragment_threshold)
        parts = []

        for index, chunk in enumerate(chunks, start=1):
            path = part_path(entry.path, index, len(chunks))
            sha = git_blob_sha(chunk)
            existing = target_by_path.get(path)
            if existing is None or existing.sha != sha:
                sha = await target_blobs.write(chunk)
            parts.append(TreeEntry(path, entry.mode, sha, size=len(chunk)))

        return parts

    # =========================================================================
    # Publish
    # =========================================================================

    async def _publish(self, target: RepositoryRef, prepared: _PreparedCommit) -> None:
        """The single target-visible write of a run."""
        if prepared.is_initial:
            await self.github.create_ref(
                target.owner, target.name, f"refs/heads/{prepared.branch}", prepared.commit_sha
            )
        else:
            await self.github.update_ref(
                target.owner, target.name, f"heads/{prepared.branch}", prepared.commit_sha,
                force=True,
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _trees(self, repo: RepositoryRef) -> TreeBuilder:
        return TreeBuilder(self.github, repo)

    @staticmethod
    def _fail(progress: ProgressReporter, started: float, message: str) -> SyncRunResult:
        progress.emit(SyncStep.ERROR, f"Sync failed: {message}", percentage=0)
        return SyncRunResult(
            success=False,
            files_processed=0,
            duration_ms=_elapsed_ms(started),
            error=message,
        )


async def sync_repositories(
    github: GitHubClient,
    source: RepositoryRef,
    target: RepositoryRef,
    on_progress: Optional[ProgressCallback] = None,
    **options,
) -> SyncRunResult:
    """Run one sync with a throwaway engine."""
    target_branch = options.pop("target_branch", DEFAULT_BRANCH)
    engine = RepositorySyncEngine(github, **options)
    return await engine.sync(source, target, on_progress, target_branch=target_branch)


def _previous_fragments(
    target_entries: List[TreeEntry], source_paths: Set[str]
) -> Dict[str, List[TreeEntry]]:
    """
    Group target ``<path>.partNNN`` entries by original path.

    Only complete ``part001..partN`` runs are kept, and never a path the
    source has as a file of its own.
    """
    grouped: Dict[str, Dict[int, TreeEntry]] = {}
    for entry in target_entries:
        if entry.path in source_paths:
            continue
        parsed = parse_part_path(entry.path)
        if parsed:
            original, index = parsed
            grouped.setdefault(original, {})[index] = entry

    fragments: Dict[str, List[TreeEntry]] = {}
    for original, parts in grouped.items():
        if sorted(parts) == list(range(1, len(parts) + 1)):
            fragments[original] = [parts[index] for index in sorted(parts)]
    return fragments


def _final_tree(
    unchanged: List[TreeEntry], results: List[FileResult], source_paths: Set[str]
) -> List[TreeEntry]:
    """Unchanged entries plus every file result; source files win over parts."""
    entries: Dict[str, TreeEntry] = {entry.path: entry for entry in unchanged}
    for result in results:
        for entry in result.entries:
            if entry.path != result.path and entry.path in source_paths:
                logger.warning(f"Dropping part {entry.path}: the source has a file at that path")
                continue
            entries[entry.path] = entry
    return list(entries.values())


def _file_message(result: FileResult) -> str:
    if result.status is FileStatus.KEPT_OLD:
        return f"Kept previous version of {result.path}"
    if result.status is FileStatus.SKIPPED:
        return f"Skipped {result.path}"
    if result.fragmented:
        return f"Fragmented {result.path} into {len(result.entries)} parts"
    return f"Synced {result.path}"


def _commit_message(source: RepositoryRef, head: BranchResolution) -> str:
    timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
    return f"Sync from {source.full_name}@{head.branch} ({head.head.sha[:7]}) at {timestamp}"


def _describe_error(e: Exception) -> str:
    if isinstance(e, AppException):
        return e.message
    message = str(e)
    if message:
        return f"{type(e).__name__}: {message}"
    return type(e).__name__


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
