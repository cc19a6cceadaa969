"""
Tree diff for one-way mirroring.

The target converges to exactly the source's file set: entries whose sha
already matches are reused, everything else is uploaded, and target-only
paths are left out of the new tree.
"""

import logging
from typing import Dict, Iterable

from .models import SyncPlan, TreeEntry

logger = logging.getLogger(__name__)


def compute_sync_set(
    source_entries: Iterable[TreeEntry],
    target_entries: Iterable[TreeEntry],
) -> SyncPlan:
    """
    Classify source entries against the target snapshot.

    Paths are compared as exact, case-sensitive strings. Source order is
    preserved in ``unchanged`` and ``to_upload``.
    """
    target_by_path: Dict[str, TreeEntry] = {entry.path: entry for entry in target_entries}
    plan = SyncPlan()
    source_paths = set()

    for entry in source_entries:
        source_paths.add(entry.path)
        existing = target_by_path.get(entry.path)
        if existing is not None and existing.sha == entry.sha:
            plan.unchanged.append(entry)
        else:
            plan.to_upload.append(entry)

    plan.dropped = [
        entry for path, entry in target_by_path.items() if path not in source_paths
    ]

    logger.debug(
        f"Diff: {len(plan.unchanged)} unchanged, {len(plan.to_upload)} to upload, "
        f"{len(plan.dropped)} dropped"
    )
    return plan
