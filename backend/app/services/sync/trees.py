"""
Tree snapshots: flatten a remote tree into entries, build a tree from entries.
"""

import logging
from typing import Iterable, List, Optional

from app.exceptions import ExternalServiceError
from app.services.github_client import GitHubClient

from .models import RepositoryRef, TreeEntry

logger = logging.getLogger(__name__)


class TreeBuilder:
    """Tree operations against one repository."""

    def __init__(self, github: GitHubClient, repo: RepositoryRef):
        self.github = github
        self.repo = repo

    async def flatten(self, tree_sha: str) -> List[TreeEntry]:
        """
        Recursively list the blob entries under ``tree_sha``.

        Sub-tree entries are implied by the paths, and submodule (``commit``)
        entries are not file content, so both are skipped. A truncated
        listing raises: mirroring from a partial listing would drop files.
        """
        data = await self.github.get_tree(self.repo.owner, self.repo.name, tree_sha)

        if data.get("truncated"):
            raise ExternalServiceError(
                "GitHub API", f"tree listing for {self.repo} was truncated"
            )

        entries = [
            TreeEntry(
                path=item["path"],
                mode=item["mode"],
                sha=item["sha"],
                size=item.get("size"),
            )
            for item in data.get("tree", [])
            if item.get("type") == "blob"
        ]
        logger.debug(f"Flattened {self.repo}@{tree_sha[:7]}: {len(entries)} files")
        return entries

    async def build(
        self, entries: Iterable[TreeEntry], base_tree: Optional[str] = None
    ) -> str:
        """Create a tree object from ``entries`` and return its sha."""
        payload = [entry.to_api() for entry in sorted(entries, key=lambda e: e.path)]
        return await self.github.create_tree(
            self.repo.owner, self.repo.name, payload, base_tree=base_tree
        )
