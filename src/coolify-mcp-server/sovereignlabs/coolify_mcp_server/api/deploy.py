"""
API for creating, configuring and deploying a Coolify application.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from sovereignlabs.coolify_mcp_server.api.orchestrator_prober import open_coolify_client
from sovereignlabs.coolify_mcp_server.api.provisioner import provision_application
from sovereignlabs.coolify_mcp_server.api.source_inspector import SourceInspector
from sovereignlabs.coolify_mcp_server.models.pre_deploy import ProvisionRequest, StepResult
from sovereignlabs.coolify_mcp_server.utils.config import get_config
from sovereignlabs.coolify_mcp_server.utils.errors import PreDeployRequestError, PreflightError
from sovereignlabs.coolify_mcp_server.utils.github import create_github_client, parse_github_url
from sovereignlabs.coolify_mcp_server.utils.security import ValidationError, validate_env_var_keys, validate_project_name
from sovereignlabs.coolify_mcp_server.utils.servers import load_server

logger = logging.getLogger(__name__)


async def resolve_git_target(
    github_repo_url: str, config: Dict[str, Any]
) -> Tuple[Optional[str], Optional[str]]:
    """
    Reads the default branch and its head commit so the application builds
    exactly what is on GitHub now. Returns (None, None) if GitHub cannot be read.
    """
    try:
        owner, repo = parse_github_url(github_repo_url)
        async with create_github_client(config.get("github_token"), config["http_timeout"]) as github:
            inspector = SourceInspector(owner, repo, github, retries=config["read_retries"])
            reference = await inspector.get_default_branch()
    except PreflightError as e:
        logger.warning(f"Could not detect branch for {github_repo_url}, using main: {e.message}")
        return None, None
    return reference.default_branch, reference.head_sha


async def configure_coolify_app(
    server_id: str,
    project_name: str,
    github_repo_url: str,
    domain: Optional[str] = None,
    env_vars: Optional[Dict[str, str]] = None,
    auto_deploy: bool = True,
    git_branch: Optional[str] = None,
    git_commit_sha: Optional[str] = None,
    force_rebuild: bool = True,
    force_no_cache: bool = True,
) -> Dict[str, Any]:
    """
    Creates (or reuses) a Coolify project and application for a repository.

    Args:
        server_id: Server record holding the Coolify credentials
        project_name: Coolify project and application name
        github_repo_url: Repository to build
        domain: Optional domain for the application
        env_vars: Environment variables to inject
        auto_deploy: Whether to trigger the first build
        git_branch: Branch to build (default branch if omitted)
        git_commit_sha: Commit to pin (branch head if omitted)
        force_rebuild: Rebuild even if Coolify thinks nothing changed
        force_no_cache: Disable the Docker build cache

    Returns:
        Dict containing the provisioning steps and identifiers
    """
    config = get_config()
    try:
        validate_project_name(project_name)
        validate_env_var_keys(env_vars or {})
        record = load_server(server_id, config)
    except (ValidationError, PreDeployRequestError) as e:
        logger.error(f"configure_coolify_app rejected: {e}")
        return {"error": str(e), "status": "failed"}

    if not git_branch or not git_commit_sha:
        detected_branch, detected_sha = await resolve_git_target(github_repo_url, config)
        git_branch = git_branch or detected_branch
        git_commit_sha = git_commit_sha or detected_sha

    request = ProvisionRequest(
        project_name=project_name,
        github_repo_url=github_repo_url,
        git_branch=git_branch,
        git_commit_sha=git_commit_sha,
        domain=domain,
        env_vars=env_vars or {},
        auto_deploy=auto_deploy,
        force_rebuild=force_rebuild,
        force_no_cache=force_no_cache,
    )

    try:
        coolify = open_coolify_client(record, config)
    except PreflightError as e:
        return {"error": e.finding(), "status": "failed"}

    try:
        version = await coolify.check_version()
    except PreflightError as e:
        await coolify.aclose()
        step = StepResult(name="connection", outcome="error", detail=e.message)
        return {"error": e.finding(), "status": "failed", "steps": [step.model_dump()]}

    try:
        result = await provision_application(coolify, request, config.get("github_token"))
    finally:
        await coolify.aclose()

    result.steps.insert(0, StepResult(name="connection", outcome="success", detail=f"Coolify v{version}"))
    response = result.model_dump()
    response["status"] = "success" if result.success else "failed"
    return response
