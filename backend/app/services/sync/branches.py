"""Branch head resolution: preferred branch, then master, else empty."""

import logging

from app.exceptions import GitHubNotFoundError
from app.services.github_client import GitHubClient

from .models import BranchHead, BranchResolution, RepositoryRef, ResolutionOutcome

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
FALLBACK_BRANCH = "master"


class BranchResolver:
    """Two-probe head lookup. Missing branches are outcomes, not errors."""

    def __init__(self, github: GitHubClient):
        self.github = github

    async def resolve(
        self, repo: RepositoryRef, preferred: str = DEFAULT_BRANCH
    ) -> BranchResolution:
        """
        Find the repository's head.

        The master fallback is only tried when looking for ``main``. Auth
        and network failures propagate from the client unchanged. Before a
        repository is reported empty its existence is confirmed, so a
        missing or inaccessible repository raises GitHubNotFoundError.
        """
        sha = await self.github.get_branch_sha(repo.owner, repo.name, preferred)
        if sha:
            return BranchResolution(
                outcome=ResolutionOutcome.PREFERRED,
                branch=preferred,
                head=BranchHead(preferred, sha),
            )

        if preferred == DEFAULT_BRANCH:
            sha = await self.github.get_branch_sha(repo.owner, repo.name, FALLBACK_BRANCH)
            if sha:
                logger.info(f"{repo}: '{preferred}' not found, using '{FALLBACK_BRANCH}'")
                return BranchResolution(
                    outcome=ResolutionOutcome.FALLBACK,
                    branch=FALLBACK_BRANCH,
                    head=BranchHead(FALLBACK_BRANCH, sha),
                )

        try:
            await self.github.get_repository(repo.owner, repo.name)
        except GitHubNotFoundError:
            raise GitHubNotFoundError(f"Repository {repo} not found or not accessible")
        logger.info(f"{repo}: no branch head found, treating as empty")
        return BranchResolution(outcome=ResolutionOutcome.EMPTY, branch=preferred)
