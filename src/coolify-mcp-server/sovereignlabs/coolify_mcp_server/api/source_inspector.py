"""
Read-only access to the GitHub repository being deployed.
"""

import logging
from typing import Optional, Set

import httpx

from sovereignlabs.coolify_mcp_server.models.github import (
    GitHubContentEntry,
    GitHubPermissions,
    GitHubRepository,
    GitRef,
    RepositoryReference,
)
from sovereignlabs.coolify_mcp_server.utils.errors import RepositoryUnreachable
from sovereignlabs.coolify_mcp_server.utils.http import (
    excerpt,
    get_with_retry,
    parse_json_response,
    parse_model,
)

logger = logging.getLogger(__name__)

RAW_CONTENT_ACCEPT = "application/vnd.github.v3.raw"


def permission_level(permissions: Optional[GitHubPermissions]) -> str:
    """Collapses GitHub's permissions object into admin/write/read/none."""
    if permissions is None:
        return "none"
    if permissions.admin:
        return "admin"
    if permissions.push:
        return "write"
    if permissions.pull:
        return "read"
    return "none"


class SourceInspector:
    """
    Reads repository metadata, the root file listing and raw file content.

    Every read goes through the retrying GET helper. Nothing is cached: a new
    inspector is built for each pipeline run.
    """

    def __init__(self, owner: str, repo: str, client: httpx.AsyncClient, retries: int = 2):
        self.owner = owner
        self.repo = repo
        self.client = client
        self.retries = retries

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def get_default_branch(self) -> RepositoryReference:
        """
        Reads the default branch, its head commit and the token's permission level.

        Returns:
            RepositoryReference for this run

        Raises:
            RepositoryUnreachable: If the repository metadata cannot be read
            UnexpectedResponseFormat: If GitHub answers with an unexpected body
        """
        try:
            response = await get_with_retry(self.client, self.repo_path, retries=self.retries)
        except httpx.HTTPError as e:
            raise RepositoryUnreachable(
                f"GitHub repository {self.owner}/{self.repo} unreachable: {e}"
            ) from e

        if response.status_code != 200:
            body = excerpt(response.text)
            logger.error(
                f"GitHub repo access failed for {self.owner}/{self.repo}: {response.status_code} - {body}"
            )
            raise RepositoryUnreachable(
                f"GitHub repository unreachable ({response.status_code}). Check that "
                f"\"{self.owner}/{self.repo}\" exists and that the token can access it. {body}",
                status_code=response.status_code,
                body=body,
            )

        data = parse_json_response(response, "GitHub repository")
        repository = parse_model(GitHubRepository, data, "GitHub repository")
        branch = repository.default_branch or "main"

        reference = RepositoryReference(
            owner=self.owner,
            name=self.repo,
            default_branch=branch,
            head_sha=await self.get_head_sha(branch),
            permission_level=permission_level(repository.permissions),
        )
        logger.info(
            f"GitHub access OK for {reference.full_name}, branch: {branch}, "
            f"permission: {reference.permission_level}"
        )
        return reference

    async def get_head_sha(self, branch: str) -> Optional[str]:
        """Current commit SHA of a branch, or None if the ref cannot be read."""
        try:
            response = await get_with_retry(
                self.client, f"{self.repo_path}/git/ref/heads/{branch}", retries=self.retries
            )
        except httpx.HTTPError as e:
            logger.warning(f"Could not read ref heads/{branch}: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"Could not read ref heads/{branch}: {response.status_code}")
            return None

        data = parse_json_response(response, "GitHub branch ref")
        return parse_model(GitRef, data, "GitHub branch ref").object.sha

    async def list_root_files(self, branch: str) -> Set[str]:
        """
        Lists file names at the repository root.

        Raises:
            RepositoryUnreachable: If the listing cannot be read
        """
        try:
            response = await get_with_retry(
                self.client,
                f"{self.repo_path}/contents/",
                retries=self.retries,
                params={"ref": branch},
            )
        except httpx.HTTPError as e:
            raise RepositoryUnreachable(f"Could not list repository files: {e}") from e

        if response.status_code != 200:
            raise RepositoryUnreachable(
                f"Could not list repository files ({response.status_code})",
                status_code=response.status_code,
                body=excerpt(response.text),
            )

        data = parse_json_response(response, "GitHub contents")
        if not isinstance(data, list):
            raise RepositoryUnreachable("Repository root listing is not a directory")
        return {parse_model(GitHubContentEntry, entry, "GitHub contents").name for entry in data}

    async def fetch_file_raw(self, path: str, ref: str) -> Optional[str]:
        """
        Fetches raw file content at a ref.

        A None result means the content is unknown, not that the file is absent:
        callers check the root listing to tell the two apart.
        """
        try:
            response = await get_with_retry(
                self.client,
                f"{self.repo_path}/contents/{path}",
                retries=self.retries,
                params={"ref": ref},
                headers={"Accept": RAW_CONTENT_ACCEPT},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Fetching {path} from {self.owner}/{self.repo} failed: {e}")
            return None

        if response.status_code != 200:
            logger.info(
                f"Fetching {path} from {self.owner}/{self.repo}@{ref} returned {response.status_code}"
            )
            return None

        content = response.text
        logger.info(f"{path} fetched ({len(content)} bytes)")
        return content
