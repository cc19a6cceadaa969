import pytest

from app.exceptions import AuthenticationError, GitHubNotFoundError
from app.services.sync.branches import BranchResolver
from app.services.sync.models import RepositoryRef, ResolutionOutcome

REPO = RepositoryRef("octo", "repo")


async def test_finds_preferred_branch(fake_github, github):
    commit = fake_github.seed("octo/repo", {"a.txt": b"a"}, branch="main")

    resolution = await BranchResolver(github).resolve(REPO)

    assert resolution.outcome is ResolutionOutcome.PREFERRED
    assert resolution.branch == "main"
    assert resolution.head.sha == commit


async def test_falls_back_to_master(fake_github, github):
    commit = fake_github.seed("octo/repo", {"a.txt": b"a"}, branch="master")

    resolution = await BranchResolver(github).resolve(REPO)

    assert resolution.outcome is ResolutionOutcome.FALLBACK
    assert resolution.branch == "master"
    assert resolution.head.sha == commit


async def test_repository_without_commits_is_empty(fake_github, github):
    fake_github.create_repo("octo/repo")

    resolution = await BranchResolver(github).resolve(REPO)

    assert resolution.is_empty
    assert resolution.branch == "main"
    assert resolution.head is None


async def test_no_master_fallback_for_custom_branch(fake_github, github):
    fake_github.seed("octo/repo", {"a.txt": b"a"}, branch="master")

    resolution = await BranchResolver(github).resolve(REPO, preferred="release")

    assert resolution.is_empty
    assert resolution.branch == "release"
    assert fake_github.count("GET", "/branches/master") == 0


async def test_auth_failure_propagates(fake_github, github):
    fake_github.seed("octo/repo", {"a.txt": b"a"})
    fake_github.valid_tokens = {"someone-else"}

    with pytest.raises(AuthenticationError):
        await BranchResolver(github).resolve(REPO)


async def test_empty_outcome_confirms_repository_exists(fake_github, github):
    fake_github.create_repo("octo/repo")

    await BranchResolver(github).resolve(REPO)

    assert fake_github.count("GET", "/repos/octo/repo") == 1


async def test_missing_repository_is_an_error(fake_github, github):
    with pytest.raises(GitHubNotFoundError) as exc_info:
        await BranchResolver(github).resolve(REPO)

    assert "octo/repo not found" in exc_info.value.message
