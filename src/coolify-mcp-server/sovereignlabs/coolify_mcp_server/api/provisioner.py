"""
Creates and configures a Coolify application for a GitHub repository.

Project and application creation abort the run. Every later step is
best-effort: its failure is recorded and the remaining steps still run, since
a partially configured application is more useful than none.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from sovereignlabs.coolify_mcp_server.api.orchestrator_prober import CoolifyClient
from sovereignlabs.coolify_mcp_server.models.pre_deploy import ProvisionRequest, ProvisionResult, StepResult
from sovereignlabs.coolify_mcp_server.utils.coolify import redact
from sovereignlabs.coolify_mcp_server.utils.errors import PreflightError
from sovereignlabs.coolify_mcp_server.utils.github import authenticated_clone_url, parse_github_url

logger = logging.getLogger(__name__)

BUILD_TIME_PREFIX = "VITE_"

DOCKERFILE_BUILD = {
    "build_pack": "dockerfile",
    "ports_exposes": "80",
}

BUILD_LOCATION = {
    "base_directory": "/",
    "dockerfile_location": "/Dockerfile",
}


def is_build_time(key: str) -> bool:
    return key.startswith(BUILD_TIME_PREFIX)


def _fqdn(domain: str) -> str:
    return domain if domain.startswith("http") else f"https://{domain}"


async def _inject_env_vars(client: CoolifyClient, app_uuid: str, env_vars: Dict[str, str]) -> StepResult:
    """Posts each variable separately and concurrently; there is no bulk endpoint."""
    keys = list(env_vars)
    results = await asyncio.gather(
        *(client.add_env_var(app_uuid, key, env_vars[key], is_build_time(key)) for key in keys),
        return_exceptions=True,
    )

    failed: List[str] = []
    for key, result in zip(keys, results):
        if isinstance(result, Exception):
            logger.warning(f"Env var {key} not accepted: {result}")
            failed.append(key)

    if not failed:
        return StepResult(name="env_vars", outcome="success", detail=f"{len(keys)} variables configured")
    if len(failed) == len(keys):
        return StepResult(name="env_vars", outcome="error", detail=f"No variable accepted: {', '.join(failed)}")
    return StepResult(
        name="env_vars",
        outcome="degraded",
        detail=f"{len(keys) - len(failed)}/{len(keys)} variables configured, rejected: {', '.join(failed)}",
    )


async def provision_application(
    client: CoolifyClient, request: ProvisionRequest, github_token: Optional[str] = None
) -> ProvisionResult:
    """
    Provisions a Coolify application and optionally triggers its first build.

    Args:
        client: Coolify API client
        request: What to deploy and where
        github_token: Platform token embedded in the clone URL for private repositories

    Returns:
        ProvisionResult with one StepResult per step
    """
    result = ProvisionResult(git_branch=request.git_branch or "main")
    steps = result.steps

    # Servers
    try:
        node_uuid = request.compute_node_uuid
        if not node_uuid:
            nodes = await client.list_compute_nodes()
            node_uuid = nodes[0].uuid
            steps.append(StepResult(name="servers", outcome="success", detail=f"Server: {nodes[0].name or node_uuid}"))
        else:
            steps.append(StepResult(name="servers", outcome="success", detail=f"Server: {node_uuid}"))
    except PreflightError as e:
        steps.append(StepResult(name="servers", outcome="error", detail=e.message))
        result.message = "No Coolify server available"
        return result

    # Project
    try:
        project = await client.find_or_create_project(request.project_name)
        result.project_uuid = project.uuid
        steps.append(StepResult(name="project", outcome="success", detail=f"Project: {request.project_name}"))
    except PreflightError as e:
        logger.error(f"Project step failed: {e.message}")
        steps.append(StepResult(name="project", outcome="error", detail=e.message))
        result.message = "Failed to create or find project"
        return result

    # Application
    try:
        owner, repo = parse_github_url(request.github_repo_url)
        git_repository = authenticated_clone_url(owner, repo, github_token)
    except PreflightError:
        git_repository = request.github_repo_url

    try:
        application = await client.create_application(
            {
                "project_uuid": project.uuid,
                "server_uuid": node_uuid,
                "environment_name": "production",
                "git_repository": git_repository,
                "git_branch": result.git_branch,
                "name": request.project_name,
                "description": f"Application {request.project_name}",
                "is_static": False,
                "instant_deploy": False,
                **DOCKERFILE_BUILD,
            }
        )
        result.app_uuid = application.uuid
        steps.append(StepResult(name="application", outcome="success", detail=f"Application: {application.uuid}"))
    except PreflightError as e:
        # Coolify may echo the clone URL back, token included
        detail = redact(e.message, github_token)
        logger.error(f"Application step failed: {detail}")
        steps.append(StepResult(name="application", outcome="error", detail=detail))
        result.message = "Failed to create application"
        return result

    app_uuid = application.uuid

    # Configuration: creation does not accept every build parameter
    core_patch: Dict[str, Any] = {**DOCKERFILE_BUILD, "git_branch": result.git_branch}
    if request.git_commit_sha:
        core_patch["git_commit_sha"] = request.git_commit_sha
    try:
        await client.patch_application(app_uuid, core_patch)
        pinned = f", commit: {request.git_commit_sha[:7]}" if request.git_commit_sha else ""
        steps.append(
            StepResult(
                name="configuration",
                outcome="success",
                detail=f"Build pack: dockerfile, branch: {result.git_branch}{pinned}",
            )
        )
    except PreflightError as e:
        logger.warning(f"Core patch rejected, retrying without commit pin: {e.message}")
        try:
            await client.patch_application(app_uuid, {**DOCKERFILE_BUILD, "git_branch": result.git_branch})
            steps.append(
                StepResult(
                    name="configuration",
                    outcome="degraded",
                    detail=f"Commit pin not accepted, branch {result.git_branch} will build its latest commit",
                )
            )
        except PreflightError as fallback_error:
            steps.append(StepResult(name="configuration", outcome="error", detail=fallback_error.message))

    try:
        await client.patch_application(app_uuid, dict(BUILD_LOCATION))
        steps.append(StepResult(name="directories", outcome="success", detail="base_directory=/, dockerfile=/Dockerfile"))
    except PreflightError as e:
        steps.append(StepResult(name="directories", outcome="degraded", detail=f"Not accepted: {e.message}"))

    if request.domain:
        fqdn = _fqdn(request.domain)
        try:
            await client.patch_application(app_uuid, {"fqdn": fqdn})
            steps.append(StepResult(name="domain", outcome="success", detail=f"Domain: {fqdn}"))
        except PreflightError as e:
            steps.append(
                StepResult(name="domain", outcome="degraded", detail=f"Configure the domain in Coolify: {e.message}")
            )

    # Env vars only after every patch to the application has completed
    if request.env_vars:
        steps.append(await _inject_env_vars(client, app_uuid, request.env_vars))
    else:
        steps.append(StepResult(name="env_vars", outcome="skipped", detail="No variables provided"))

    try:
        app_config = await client.get_application(app_uuid)
        result.app_config = app_config.summary()
        steps.append(
            StepResult(
                name="verify",
                outcome="success",
                detail=f"Config: build_pack={app_config.build_pack}, base_dir={app_config.base_directory or '/'}",
            )
        )
    except PreflightError as e:
        steps.append(StepResult(name="verify", outcome="error", detail=f"Could not read back configuration: {e.message}"))

    if request.auto_deploy:
        try:
            result.deployment_uuid = await client.trigger_deploy(
                app_uuid, force=request.force_rebuild, no_cache=request.force_no_cache
            )
            forced = " (forced rebuild)" if request.force_rebuild else ""
            steps.append(
                StepResult(name="deploy", outcome="success", detail=f"Deployment started{forced}: {result.deployment_uuid or 'n/a'}")
            )
        except PreflightError as e:
            logger.error(f"Deploy trigger failed: {e.message}")
            steps.append(StepResult(name="deploy", outcome="error", detail=e.message))
    else:
        steps.append(StepResult(name="deploy", outcome="pending", detail="Manual deployment required"))

    result.success = True
    degraded = result.degraded_steps()
    if degraded:
        result.message = f"Application configured with issues in: {', '.join(step.name for step in degraded)}"
    else:
        result.message = "Application configured"
    logger.info(f"Provisioning of {request.project_name} finished: {result.message}")
    return result
