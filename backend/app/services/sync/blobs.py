"""Content-addressed blob access for one repository."""

import hashlib

from app.services.github_client import GitHubClient

from .models import RepositoryRef


def git_blob_sha(content: bytes) -> str:
    """The sha git assigns to ``content`` as a blob object."""
    header = f"blob {len(content)}\0".encode("ascii")
    return hashlib.sha1(header + content).hexdigest()


class BlobStore:
    """Read and write blobs of ``repo`` by sha."""

    def __init__(self, github: GitHubClient, repo: RepositoryRef):
        self.github = github
        self.repo = repo

    async def read(self, sha: str) -> bytes:
        return await self.github.get_blob(self.repo.owner, self.repo.name, sha)

    async def write(self, content: bytes) -> str:
        return await self.github.create_blob(self.repo.owner, self.repo.name, content)
