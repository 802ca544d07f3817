"""
Pre-deploy check: decides whether a GitHub repository can be deployed to a
user's Coolify instance, repairing the Dockerfile on the way if it can.

Checks run strictly in order, since each one consumes what the previous one
found (branch, head commit, permission level). Findings accumulate on a single
result object, so a run cut short by the wall-clock budget still reports
everything it learned.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

import httpx

from sovereignlabs.coolify_mcp_server.api.orchestrator_prober import CoolifyClient, open_coolify_client
from sovereignlabs.coolify_mcp_server.api.provisioner import provision_application
from sovereignlabs.coolify_mcp_server.api.recipe_analyzer import analyze_recipe
from sovereignlabs.coolify_mcp_server.api.recipe_repair import RECIPE_PATH, RecipeRepairEngine
from sovereignlabs.coolify_mcp_server.api.source_inspector import SourceInspector
from sovereignlabs.coolify_mcp_server.models.coolify import CoolifyServer, CoolifyServerRecord
from sovereignlabs.coolify_mcp_server.models.github import RepositoryReference
from sovereignlabs.coolify_mcp_server.models.pre_deploy import (
    DockerfileProof,
    EnvVarNeeded,
    GithubInfo,
    PreDeployRequest,
    PreDeployResult,
    ProvisionRequest,
    StepOutcome,
    StepResult,
)
from sovereignlabs.coolify_mcp_server.models.recipe import RecipeAnalysis
from sovereignlabs.coolify_mcp_server.utils.config import get_config
from sovereignlabs.coolify_mcp_server.utils.coolify import validate_coolify_url
from sovereignlabs.coolify_mcp_server.utils.errors import (
    ManifestMissing,
    MissingParameter,
    PipelineTimeout,
    PreDeployRequestError,
    PreflightError,
    RecipeInvalid,
    RepositoryUnreachable,
    VerificationFailed,
)
from sovereignlabs.coolify_mcp_server.utils.github import create_github_client, parse_github_url
from sovereignlabs.coolify_mcp_server.utils.security import ValidationError, validate_env_var_keys, validate_project_name
from sovereignlabs.coolify_mcp_server.utils.servers import load_server

logger = logging.getLogger(__name__)

PROOF_EXCERPT_LENGTH = 500
LOCKFILES = ("package-lock.json", "bun.lockb")

REQUIRED_CHECKS = (
    "coolify_connection",
    "coolify_servers",
    "github_access",
    "package_json",
    "dockerfile",
    "dockerfile_verified",
)


def _proof(analysis: RecipeAnalysis, content: Optional[str]) -> DockerfileProof:
    return DockerfileProof(
        raw_content=content[:PROOF_EXCERPT_LENGTH] if content is not None else None,
        copy_package_line=analysis.copy_package_line,
        npm_install_line=analysis.install_command_line,
        is_valid=analysis.is_valid,
    )


def env_vars_needed(config: Dict[str, Any]) -> List[EnvVarNeeded]:
    """Build-time variables a Vite/Supabase frontend needs, with server-side suggestions."""
    supabase_url = config.get("supabase_url")
    supabase_key = config.get("supabase_anon_key")
    return [
        EnvVarNeeded(key="VITE_SUPABASE_URL", suggested_value=supabase_url, is_build_time=True),
        EnvVarNeeded(key="VITE_SUPABASE_PUBLISHABLE_KEY", suggested_value=supabase_key, is_build_time=True),
        EnvVarNeeded(key="VITE_SUPABASE_ANON_KEY", suggested_value=supabase_key, is_build_time=True),
        EnvVarNeeded(key="NODE_ENV", suggested_value="production", is_build_time=True),
    ]


def validate_request(request: PreDeployRequest) -> None:
    """
    Raises:
        MissingParameter: If a required parameter is blank
        PreDeployRequestError: If the project name or a variable name is not usable in Coolify
    """
    for field in ("server_id", "github_repo_url", "project_name"):
        if not (getattr(request, field) or "").strip():
            raise MissingParameter(f"Missing required parameter: {field}")
    try:
        validate_project_name(request.project_name)
        validate_env_var_keys(request.env_vars)
    except ValidationError as e:
        raise PreDeployRequestError(str(e)) from e


class PreDeployCoordinator:
    """Runs the pre-deploy checks for one request and accumulates the result."""

    def __init__(
        self,
        request: PreDeployRequest,
        record: CoolifyServerRecord,
        config: Dict[str, Any],
        coolify: Optional[CoolifyClient] = None,
        github: Optional[httpx.AsyncClient] = None,
    ):
        self.request = request
        self.record = record
        self.config = config
        self.coolify = coolify
        self.github = github
        self.result = PreDeployResult()

        self.compute_nodes: List[CoolifyServer] = []
        self.inspector: Optional[SourceInspector] = None
        self.reference: Optional[RepositoryReference] = None
        self.root_files: Optional[Set[str]] = None
        self._owned: List[Any] = []

    def record_step(self, name: str, outcome: StepOutcome, detail: str = "") -> None:
        self.result.steps.append(StepResult(name=name, outcome=outcome, detail=detail))

    def block(self, error: PreflightError, step: Optional[str] = None) -> None:
        logger.warning(f"Blocking: {error.finding()}")
        self.result.blocking_errors.append(error.finding())
        if step:
            self.record_step(step, "error", error.message)

    def compute_ready(self) -> bool:
        checks = self.result.checks
        return not self.result.blocking_errors and all(getattr(checks, name) for name in REQUIRED_CHECKS)

    async def run(self) -> PreDeployResult:
        if not await self.check_orchestrator():
            return self.result
        await self.check_compute_nodes()

        if not await self.check_repository():
            self.finish()
            return self.result

        await self.check_manifest()
        await self.check_recipe()
        self.list_env_vars()
        self.finish()

        if self.request.auto_deploy:
            await self.provision()
        return self.result

    def finish(self) -> None:
        self.result.ready = self.compute_ready()
        logger.info(
            f"Pre-deploy check completed. Ready: {self.result.ready}, "
            f"actions: {len(self.result.actions_taken)}, errors: {len(self.result.blocking_errors)}"
        )

    async def check_orchestrator(self) -> bool:
        """No connection to Coolify aborts the whole run."""
        if self.record.coolify_url:
            validation = validate_coolify_url(self.record.coolify_url)
            if validation.error or validation.warning:
                self.result.warnings.append(validation.error or validation.warning)

        try:
            if self.coolify is None:
                self.coolify = open_coolify_client(self.record, self.config)
                self._owned.append(self.coolify)
            version = await self.coolify.check_version()
        except PreflightError as e:
            self.block(e, step="coolify_connection")
            return False

        self.result.checks.coolify_connection = True
        self.record_step("coolify_connection", "success", f"Coolify v{version}")
        return True

    async def check_compute_nodes(self) -> None:
        try:
            self.compute_nodes = await self.coolify.list_compute_nodes()
        except PreflightError as e:
            self.block(e, step="coolify_servers")
            return

        self.result.checks.coolify_servers = True
        names = ", ".join(node.name or node.uuid for node in self.compute_nodes)
        self.record_step("coolify_servers", "success", f"{len(self.compute_nodes)} server(s): {names}")

    async def check_repository(self) -> bool:
        """Repository access gates every later check."""
        try:
            owner, repo = parse_github_url(self.request.github_repo_url)
        except PreflightError as e:
            self.block(e, step="github_access")
            return False

        self.result.github_info = GithubInfo(owner=owner, repo=repo)
        if self.github is None:
            self.github = create_github_client(self.config.get("github_token"), self.config["http_timeout"])
            self._owned.append(self.github)
        self.inspector = SourceInspector(owner, repo, self.github, retries=self.config["read_retries"])

        try:
            self.reference = await self.inspector.get_default_branch()
        except PreflightError as e:
            self.block(e, step="github_access")
            return False

        reference = self.reference
        self.result.checks.github_access = True
        self.result.checks.github_write_permission = reference.has_write_permission
        self.result.branch = reference.default_branch
        self.result.commit_sha = reference.head_sha or ""
        self.result.github_info.has_write_permission = reference.has_write_permission
        self.result.github_info.permission_level = reference.permission_level
        self.record_step(
            "github_access",
            "success",
            f"{reference.full_name}@{reference.default_branch} ({reference.permission_level})",
        )
        return True

    async def check_manifest(self) -> None:
        """A missing manifest is recorded but does not stop the recipe check."""
        try:
            self.root_files = await self.inspector.list_root_files(self.reference.default_branch)
        except PreflightError as e:
            self.block(e, step="package_json")
            return

        if "package.json" in self.root_files:
            self.result.checks.package_json = True
            self.record_step("package_json", "success", "package.json found")
        else:
            self.block(ManifestMissing("package.json missing at the repository root"), step="package_json")

        if not any(lockfile in self.root_files for lockfile in LOCKFILES):
            self.result.warnings.append("package-lock.json missing: npm install will be used instead of npm ci")

    @property
    def fix_enabled(self) -> bool:
        return self.request.auto_fix and not self.request.skip_dockerfile_fix

    async def check_recipe(self) -> None:
        reference = self.reference
        try:
            content = await self.inspector.fetch_file_raw(RECIPE_PATH, reference.default_branch)
        except PreflightError as e:
            self.result.dockerfile_status = "github_fetch_failed"
            self.block(e, step="dockerfile")
            return

        if content is not None:
            self.result.github_info.dockerfile_fetched = True
            analysis = analyze_recipe(content)
            self.result.dockerfile_proof = _proof(analysis, content)

            if analysis.is_valid:
                self.result.dockerfile_status = "exists_valid"
                self.result.checks.dockerfile = True
                self.result.checks.dockerfile_verified = True
                self.record_step("dockerfile", "success", analysis.detail)
                return

            self.result.dockerfile_status = "invalid"
            self.result.warnings.append(f"Broken Dockerfile: {analysis.detail}")
            if not self.fix_enabled:
                self.result.warnings.append("Dockerfile auto-fix disabled by request")
                self.block(RecipeInvalid("Dockerfile invalid and auto-fix disabled"), step="dockerfile")
                return
            await self.repair("fix", content)
            return

        self.result.github_info.dockerfile_fetched = False
        if self.root_files is None or RECIPE_PATH in self.root_files:
            # Listed (or unknown) but unreadable: never overwrite what we could not read
            self.result.dockerfile_status = "github_fetch_failed"
            if self.root_files is not None:
                self.result.warnings.append(
                    "Dockerfile exists but could not be read through the GitHub API: check token permissions"
                )
            self.block(
                RepositoryUnreachable(
                    f"Could not read the Dockerfile from {reference.full_name}. "
                    "Check that the repository is correct and accessible."
                ),
                step="dockerfile",
            )
            return

        self.result.dockerfile_status = "missing"
        if not self.fix_enabled:
            self.block(RecipeInvalid("Dockerfile missing and auto-fix disabled"), step="dockerfile")
            return
        await self.repair("generate", None)

    async def repair(self, mode: str, content: Optional[str]) -> None:
        engine = RecipeRepairEngine(self.inspector, self.github, verify_delay=self.config["verify_delay"])
        try:
            outcome = await engine.repair(
                self.reference,
                token_present=bool(self.config.get("github_token")),
                mode=mode,
                current_content=content,
            )
        except PreflightError as e:
            logger.error(f"Dockerfile {mode} failed: {e.message}", exc_info=True)
            self.block(e, step="dockerfile")
            return

        self.result.commit_sha = outcome.commit_sha
        self.result.checks.dockerfile = True
        if mode == "generate":
            self.result.dockerfile_status = "generated"
            self.result.actions_taken.append("Dockerfile generated automatically")
        else:
            self.result.dockerfile_status = "exists_fixed"
            self.result.actions_taken.append("Dockerfile corrected automatically")

        if outcome.analysis is not None:
            self.result.dockerfile_proof = _proof(outcome.analysis, outcome.raw_content)

        if outcome.verified:
            self.result.checks.dockerfile_verified = True
            self.result.actions_taken.append("Dockerfile verified after commit")
            self.record_step("dockerfile", "success", f"Commit {outcome.commit_sha[:7]} verified")
        elif outcome.analysis is None:
            self.block(
                VerificationFailed("Could not re-read the Dockerfile after the repair commit"), step="dockerfile"
            )
        else:
            self.block(VerificationFailed(f"Fix not applied: {outcome.analysis.detail}"), step="dockerfile")

    def list_env_vars(self) -> None:
        self.result.env_vars_needed = env_vars_needed(self.config)
        self.result.checks.env_vars = True

    async def provision(self) -> None:
        if not self.result.ready:
            self.result.warnings.append("Deployment not started: the pre-deploy check is not ready")
            self.record_step("provisioning", "skipped", "Not ready")
            return

        request = ProvisionRequest(
            project_name=self.request.project_name,
            github_repo_url=self.request.github_repo_url,
            git_branch=self.result.branch,
            git_commit_sha=self.result.commit_sha or None,
            compute_node_uuid=self.compute_nodes[0].uuid if self.compute_nodes else None,
            domain=self.request.domain,
            env_vars=self.request.env_vars,
            auto_deploy=True,
        )
        provisioning = await provision_application(self.coolify, request, self.config.get("github_token"))
        self.result.provisioning = provisioning

        if provisioning.success:
            self.result.actions_taken.append(f"Coolify application {provisioning.app_uuid} configured")
            self.record_step("provisioning", "success", provisioning.message)
        else:
            self.result.warnings.append(f"[ProvisioningFailed] {provisioning.message}")
            self.record_step("provisioning", "error", provisioning.message)

    async def aclose(self) -> None:
        """Closes the clients this coordinator opened itself."""
        for client in self._owned:
            await client.aclose()
        self._owned = []


async def run_pre_deploy_check(
    request: PreDeployRequest,
    config: Optional[Dict[str, Any]] = None,
    coolify: Optional[CoolifyClient] = None,
    github: Optional[httpx.AsyncClient] = None,
) -> PreDeployResult:
    """
    Runs the pre-deploy check within the configured wall-clock budget.

    Args:
        request: Caller parameters
        config: Server configuration (loaded from the environment if omitted)
        coolify: Optional pre-built Coolify client
        github: Optional pre-built GitHub client

    Returns:
        PreDeployResult, partial if the budget ran out

    Raises:
        PreDeployRequestError: If the request is incomplete or the server record is unknown
    """
    config = config or get_config()
    validate_request(request)
    record = load_server(request.server_id, config)

    logger.info(f"Pre-deploy check for {request.github_repo_url} on server {request.server_id}")
    coordinator = PreDeployCoordinator(request, record, config, coolify=coolify, github=github)
    try:
        await asyncio.wait_for(coordinator.run(), timeout=config["pipeline_timeout"])
    except asyncio.TimeoutError:
        coordinator.block(
            PipelineTimeout(f"Pre-deploy check exceeded its {config['pipeline_timeout']}s budget"),
            step="timeout",
        )
        coordinator.result.ready = False
    finally:
        await coordinator.aclose()

    return coordinator.result


async def pre_deploy_check(
    server_id: str,
    github_repo_url: str,
    project_name: str,
    domain: Optional[str] = None,
    env_vars: Optional[Dict[str, str]] = None,
    auto_deploy: bool = False,
    skip_dockerfile_fix: bool = False,
) -> Dict[str, Any]:
    """
    Checks and prepares a repository for deployment to Coolify.

    Returns:
        Dict with ``ready``, the ``checks`` map, findings and Dockerfile proof,
        or ``{"error", "status": "failed"}`` if the request itself is invalid
    """
    request = PreDeployRequest(
        server_id=server_id,
        github_repo_url=github_repo_url,
        project_name=project_name,
        domain=domain,
        env_vars=env_vars or {},
        auto_deploy=auto_deploy,
        skip_dockerfile_fix=skip_dockerfile_fix,
    )
    try:
        result = await run_pre_deploy_check(request)
    except PreDeployRequestError as e:
        logger.error(f"Pre-deploy request rejected: {e.message}")
        return {"error": e.message, "status": "failed", "code": e.code}

    return result.model_dump()
