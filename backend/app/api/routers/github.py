"""
GitHub helper endpoints.

Token validation, repository listing and repository checks used by the
configuration form before a config is saved.
"""

import logging
from typing import List, Optional

import httpx
from fastapi import APIRouter, Depends

from app.core.config import GITHUB_TOKEN
from app.dependencies import verify_auth
from app.exceptions import ConfigurationError, GitHubAPIError, GitHubNotFoundError
from app.schemas.github import (
    GitHubRepository,
    RepositoryListRequest,
    ValidateRepositoryRequest,
    ValidateRepositoryResponse,
    ValidateTokenRequest,
    ValidateTokenResponse,
)
from app.services.github_client import GitHubClient, validate_token
from app.services.sync.models import RepositoryRef

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/github", tags=["github"], dependencies=[Depends(verify_auth)])


def get_github_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outgoing GitHub calls; None means the network."""
    return None


def _resolve_token(token: Optional[str]) -> str:
    resolved = token or GITHUB_TOKEN
    if not resolved:
        raise ConfigurationError("GitHub", "token")
    return resolved


@router.post("/validate-token", response_model=ValidateTokenResponse)
async def validate_github_token(
    body: ValidateTokenRequest,
    transport=Depends(get_github_transport),
):
    """Check a personal access token against GET /user."""
    return await validate_token(body.token, transport=transport)


@router.post("/repositories", response_model=List[GitHubRepository])
async def list_github_repositories(
    body: RepositoryListRequest,
    transport=Depends(get_github_transport),
):
    """Repositories visible to the token, most recently updated first."""
    async with GitHubClient(_resolve_token(body.token), transport=transport) as github:
        repos = await github.list_repositories(visibility=body.visibility)

    return [
        GitHubRepository(
            owner=repo["owner"]["login"],
            name=repo["name"],
            full_name=repo["full_name"],
            private=bool(repo.get("private")),
            default_branch=repo.get("default_branch"),
        )
        for repo in repos
    ]


@router.post("/validate-repository", response_model=ValidateRepositoryResponse)
async def validate_github_repository(
    body: ValidateRepositoryRequest,
    transport=Depends(get_github_transport),
):
    """
    Check that a repository exists and the token can see it.

    A malformed name is a 400; a missing or hidden repository is
    ``valid: false``.
    """
    ref = RepositoryRef.parse(body.repository)

    async with GitHubClient(_resolve_token(body.token), transport=transport) as github:
        try:
            repo = await github.get_repository(ref.owner, ref.name)
        except GitHubNotFoundError:
            return ValidateRepositoryResponse(
                valid=False, error=f"Repository {ref.full_name} not found or not accessible"
            )
        except GitHubAPIError as e:
            logger.warning(f"Repository check for {ref} failed: {e.message}")
            return ValidateRepositoryResponse(valid=False, error=e.message)

    return ValidateRepositoryResponse(
        valid=True,
        full_name=repo.get("full_name", ref.full_name),
        default_branch=repo.get("default_branch"),
        private=repo.get("private"),
    )
