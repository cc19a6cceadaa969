"""GitHub helper endpoint schemas."""

from typing import Literal, Optional

from pydantic import BaseModel


class ValidateTokenRequest(BaseModel):
    token: str


class ValidateTokenResponse(BaseModel):
    valid: bool
    username: Optional[str] = None
    error: Optional[str] = None


class RepositoryListRequest(BaseModel):
    """Without a token, the server's fallback GITHUB_TOKEN is used."""
    token: Optional[str] = None
    visibility: Optional[Literal["all", "public", "private"]] = None


class GitHubRepository(BaseModel):
    owner: str
    name: str
    full_name: str
    private: bool = False
    default_branch: Optional[str] = None


class ValidateRepositoryRequest(BaseModel):
    repository: str
    token: Optional[str] = None


class ValidateRepositoryResponse(BaseModel):
    valid: bool
    full_name: Optional[str] = None
    default_branch: Optional[str] = None
    private: Optional[bool] = None
    error: Optional[str] = None
