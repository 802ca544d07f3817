"""
Commits a corrected Dockerfile through GitHub's Git Data API and verifies it.

The write is a chain of content-addressed calls: resolve the base tree,
create one blob per file, layer the blobs over the base tree, create a
commit on top of the base commit and move the branch ref to it. Any failing
step aborts the chain. Write calls are never retried, since a retry after an
ambiguous failure could leave duplicate objects behind.
"""

import asyncio
import logging
from typing import Dict, List, Literal, Optional, Tuple, Type

import httpx

from sovereignlabs.coolify_mcp_server.api.recipe_analyzer import analyze_recipe
from sovereignlabs.coolify_mcp_server.api.source_inspector import SourceInspector
from sovereignlabs.coolify_mcp_server.models.github import GitCommit, GitObject, GitRef, RepositoryReference
from sovereignlabs.coolify_mcp_server.models.recipe import RecipeAnalysis, RepairOutcome, WriteSetEntry
from sovereignlabs.coolify_mcp_server.utils.errors import (
    BaseTreeResolutionFailed,
    BlobCreationFailed,
    CommitCreationFailed,
    CommitWriteError,
    CredentialsMissing,
    InsufficientPermission,
    RefUpdateFailed,
    TreeCreationFailed,
    UnexpectedResponseFormat,
)
from sovereignlabs.coolify_mcp_server.utils.http import excerpt, parse_json_response, parse_model
from sovereignlabs.coolify_mcp_server.utils.templates import recipe_repair_files

logger = logging.getLogger(__name__)

RECIPE_PATH = "Dockerfile"
FILE_MODE = "100644"

WRITE_PERMISSION_LEVELS = ("write", "admin")

COMMIT_MESSAGES = {
    "fix": "Pre-deploy fix: corrected Dockerfile (COPY package.json before npm install)",
    "generate": "Pre-deploy: generated Dockerfile for deployment",
}

RepairMode = Literal["fix", "generate"]


def build_write_set() -> List[WriteSetEntry]:
    """Dockerfile and nginx config written by a repair, Dockerfile first."""
    return [WriteSetEntry(path=path, content=content) for path, content in recipe_repair_files().items()]


class RecipeRepairEngine:
    """Writes a set of files as one commit on a branch, then re-reads the recipe."""

    def __init__(self, inspector: SourceInspector, client: httpx.AsyncClient, verify_delay: float = 2.0):
        self.inspector = inspector
        self.client = client
        self.verify_delay = verify_delay

    @property
    def git_path(self) -> str:
        return f"{self.inspector.repo_path}/git"

    @staticmethod
    def check_permission(level: str) -> None:
        """
        Raises InsufficientPermission unless the token can push.

        Checked before the first write so a rejected token never leaves a
        half-written chain behind.
        """
        if level not in WRITE_PERMISSION_LEVELS:
            raise InsufficientPermission(level)

    async def _post(
        self, path: str, payload: Dict, error_class: Type[CommitWriteError], step: str
    ) -> GitObject:
        try:
            response = await self.client.post(f"{self.git_path}/{path}", json=payload)
        except httpx.HTTPError as e:
            raise error_class(f"{step} failed: {e}") from e

        if response.status_code not in (200, 201):
            logger.error(f"{step} failed: {response.status_code} - {excerpt(response.text)}")
            raise error_class(
                f"{step} failed ({response.status_code}): {excerpt(response.text)}",
                status_code=response.status_code,
            )

        try:
            return parse_model(GitObject, parse_json_response(response, step), step)
        except UnexpectedResponseFormat as e:
            raise error_class(f"{step} failed: {e.message}", status_code=response.status_code) from e

    async def resolve_base_tree(self, base_sha: Optional[str]) -> str:
        if not base_sha:
            raise BaseTreeResolutionFailed("Base commit unknown: could not read the branch head")

        try:
            response = await self.client.get(f"{self.git_path}/commits/{base_sha}")
        except httpx.HTTPError as e:
            raise BaseTreeResolutionFailed(f"Reading base commit {base_sha} failed: {e}") from e

        if response.status_code != 200:
            raise BaseTreeResolutionFailed(
                f"Reading base commit {base_sha} failed ({response.status_code})",
                status_code=response.status_code,
            )

        try:
            commit = parse_model(GitCommit, parse_json_response(response, "base commit"), "base commit")
        except UnexpectedResponseFormat as e:
            raise BaseTreeResolutionFailed(e.message) from e
        return commit.tree.sha

    async def create_blob(self, content: str) -> str:
        payload = {"content": content, "encoding": "utf-8"}
        return (await self._post("blobs", payload, BlobCreationFailed, "Blob creation")).sha

    async def create_tree(self, base_tree: str, blobs: List[Tuple[str, str]]) -> str:
        entries = [
            {"path": path, "mode": FILE_MODE, "type": "blob", "sha": sha} for path, sha in blobs
        ]
        payload = {"base_tree": base_tree, "tree": entries}
        return (await self._post("trees", payload, TreeCreationFailed, "Tree creation")).sha

    async def create_commit(self, message: str, tree: str, parent: str) -> str:
        payload = {"message": message, "tree": tree, "parents": [parent]}
        return (await self._post("commits", payload, CommitCreationFailed, "Commit creation")).sha

    async def update_ref(self, branch: str, sha: str, force: bool = True) -> None:
        """
        Moves the branch to ``sha`` and re-reads the ref to confirm it landed.

        Raises:
            RefUpdateFailed: If GitHub rejects the update or the ref points elsewhere afterwards
        """
        try:
            response = await self.client.patch(
                f"{self.git_path}/refs/heads/{branch}", json={"sha": sha, "force": force}
            )
        except httpx.HTTPError as e:
            raise RefUpdateFailed(f"Ref update failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"updateRef failed: {response.status_code} - {excerpt(response.text)}")
            raise RefUpdateFailed(
                f"Branch update rejected ({response.status_code}), is '{branch}' protected? "
                f"{excerpt(response.text)}",
                status_code=response.status_code,
            )

        try:
            check = await self.client.get(f"{self.git_path}/ref/heads/{branch}")
            current = parse_model(GitRef, parse_json_response(check, "branch ref"), "branch ref").object.sha
        except (httpx.HTTPError, UnexpectedResponseFormat) as e:
            raise RefUpdateFailed(f"Could not confirm branch update: {e}") from e

        if current != sha:
            raise RefUpdateFailed(
                f"Branch '{branch}' points to {current[:7]} after update, expected {sha[:7]}"
            )

    async def commit_write_set(
        self,
        write_set: List[WriteSetEntry],
        base_sha: Optional[str],
        branch: str,
        message: str,
        force: bool = True,
    ) -> str:
        """
        Writes every entry of the write set as one commit on ``branch``.

        Returns:
            SHA of the new commit

        Raises:
            CommitWriteError: The subclass names the step that failed
        """
        base_tree = await self.resolve_base_tree(base_sha)

        blobs = []
        for entry in write_set:
            blobs.append((entry.path, await self.create_blob(entry.content)))
        logger.info(f"Created {len(blobs)} blobs")

        tree = await self.create_tree(base_tree, blobs)
        commit = await self.create_commit(message, tree, base_sha)
        await self.update_ref(branch, commit, force=force)

        logger.info(f"Pushed commit {commit} to {self.inspector.owner}/{self.inspector.repo}@{branch}")
        return commit

    async def verify(self, branch: str) -> Tuple[Optional[RecipeAnalysis], Optional[str]]:
        """Re-fetches the recipe from the branch and re-runs the analyzer."""
        if self.verify_delay > 0:
            await asyncio.sleep(self.verify_delay)

        content = await self.inspector.fetch_file_raw(RECIPE_PATH, branch)
        if content is None:
            logger.warning("Could not re-read the Dockerfile after the repair commit")
            return None, None

        analysis = analyze_recipe(content)
        logger.info(f"Verification: {analysis.detail}")
        return analysis, content

    async def repair(
        self,
        reference: RepositoryReference,
        token_present: bool,
        mode: RepairMode = "fix",
        current_content: Optional[str] = None,
        force: bool = True,
    ) -> RepairOutcome:
        """
        Replaces the Dockerfile with the known-good template and verifies the result.

        A recipe that already passes analysis is left alone, so re-running the
        pipeline never produces a duplicate commit.

        Args:
            reference: Repository snapshot for this run
            token_present: Whether a platform GitHub token is configured
            mode: "fix" for a broken recipe, "generate" when none exists
            current_content: Recipe content as currently fetched, if any
            force: Whether the ref update is forced

        Returns:
            RepairOutcome; ``verified`` is only true when the re-read recipe is valid

        Raises:
            CredentialsMissing: No platform token configured
            InsufficientPermission: Token cannot push
            CommitWriteError: A step of the write chain failed
        """
        if current_content is not None:
            current = analyze_recipe(current_content)
            if current.is_valid:
                logger.info("Dockerfile already valid, skipping repair")
                return RepairOutcome(
                    commit_sha=reference.head_sha or "",
                    verified=True,
                    analysis=current,
                    raw_content=current_content,
                )

        if not token_present:
            raise CredentialsMissing(
                "GitHub token not configured: the Dockerfile cannot be corrected automatically"
            )
        self.check_permission(reference.permission_level)

        write_set = build_write_set()
        commit = await self.commit_write_set(
            write_set,
            reference.head_sha,
            reference.default_branch,
            COMMIT_MESSAGES[mode],
            force=force,
        )

        analysis, content = await self.verify(reference.default_branch)
        return RepairOutcome(
            commit_sha=commit,
            files_written=[entry.path for entry in write_set],
            verified=bool(analysis and analysis.is_valid),
            analysis=analysis,
            raw_content=content,
        )
