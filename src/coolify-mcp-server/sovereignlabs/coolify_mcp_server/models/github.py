"""
Response schemas for the GitHub REST API endpoints used by the pipeline.

Only the fields the pipeline reads are declared; everything else is ignored.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class GitHubPermissions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    admin: bool = False
    push: bool = False
    pull: bool = False


class GitHubRepository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: Optional[str] = None
    default_branch: Optional[str] = None
    private: Optional[bool] = None
    permissions: Optional[GitHubPermissions] = None


class GitObject(BaseModel):
    """Anything GitHub identifies by SHA: blobs, trees, commits."""

    model_config = ConfigDict(extra="ignore")

    sha: str
    type: Optional[str] = None


class GitRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ref: Optional[str] = None
    object: GitObject


class GitCommit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sha: str
    tree: GitObject


class GitHubContentEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    path: Optional[str] = None
    type: Optional[str] = None


class RepositoryReference(BaseModel):
    """Snapshot of the target repository taken at the start of a run."""

    owner: str
    name: str
    default_branch: str
    head_sha: Optional[str] = None
    permission_level: str = "none"

    @property
    def has_write_permission(self) -> bool:
        return self.permission_level in ("admin", "write")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"
