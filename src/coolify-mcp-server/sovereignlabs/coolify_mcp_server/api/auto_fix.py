"""
API for correcting a repository's Dockerfile and optionally redeploying the
Coolify application that builds it.
"""

import logging
from typing import Any, Dict, Optional

from sovereignlabs.coolify_mcp_server.api.orchestrator_prober import CoolifyClient, open_coolify_client
from sovereignlabs.coolify_mcp_server.api.recipe_analyzer import analyze_recipe
from sovereignlabs.coolify_mcp_server.api.recipe_repair import RECIPE_PATH, RecipeRepairEngine
from sovereignlabs.coolify_mcp_server.api.source_inspector import SourceInspector
from sovereignlabs.coolify_mcp_server.models.pre_deploy import AutoFixResult, RedeployResult, StepResult
from sovereignlabs.coolify_mcp_server.utils.config import get_config
from sovereignlabs.coolify_mcp_server.utils.errors import CredentialsMissing, PreflightError, RepositoryUnreachable
from sovereignlabs.coolify_mcp_server.utils.github import commit_url, create_github_client, parse_github_url
from sovereignlabs.coolify_mcp_server.utils.servers import load_server

logger = logging.getLogger(__name__)


async def redeploy_application(
    client: CoolifyClient, app_uuid: str, branch: str, commit_sha: str
) -> RedeployResult:
    """
    Points the application at the fixed commit and triggers a forced rebuild.

    If Coolify rejects the full build patch, only the branch is patched. The
    rebuild then uses the branch head, which is not guaranteed to be the fixed
    commit, so ``patch_verified`` stays false.
    """
    result = RedeployResult(branch=branch, commit_sha=commit_sha)

    try:
        await client.patch_application(
            app_uuid,
            {
                "git_branch": branch,
                "git_commit_sha": commit_sha,
                "base_directory": "/",
                "dockerfile_location": "/Dockerfile",
            },
        )
        result.patch_verified = True
    except PreflightError as e:
        logger.warning(f"Full patch of {app_uuid} rejected, patching branch only: {e.message}")
        try:
            await client.patch_application(app_uuid, {"git_branch": branch})
        except PreflightError as fallback_error:
            logger.warning(f"Branch patch of {app_uuid} rejected: {fallback_error.message}")

    try:
        result.deployment_uuid = await client.trigger_deploy(app_uuid, force=True)
    except PreflightError as e:
        result.message = e.message
        return result

    result.success = True
    if result.patch_verified:
        result.message = f"Redeploy started on {branch}@{commit_sha[:7]}"
    else:
        result.message = f"Redeploy started on {branch} head; commit pin was not accepted"
    return result


async def auto_fix_dockerfile(
    github_repo_url: str,
    server_id: Optional[str] = None,
    coolify_app_uuid: Optional[str] = None,
    auto_redeploy: bool = False,
) -> Dict[str, Any]:
    """
    Commits the corrected Dockerfile and nginx.conf to the default branch.

    Args:
        github_repo_url: Repository to fix
        server_id: Server record holding the Coolify credentials (for redeploy)
        coolify_app_uuid: Coolify application to redeploy
        auto_redeploy: Whether to redeploy after the fix

    Returns:
        Dict with the commit, verification status and redeploy outcome
    """
    config = get_config()
    result = AutoFixResult()
    token = config.get("github_token")

    try:
        if not token:
            raise CredentialsMissing("GitHub token not configured")
        owner, repo = parse_github_url(github_repo_url)
    except PreflightError as e:
        result.message = e.finding()
        return result.model_dump()

    logger.info(f"Auto-fixing Dockerfile for {owner}/{repo}, redeploy: {auto_redeploy}")
    async with create_github_client(token, config["http_timeout"]) as github:
        inspector = SourceInspector(owner, repo, github, retries=config["read_retries"])
        engine = RecipeRepairEngine(inspector, github, verify_delay=config["verify_delay"])

        try:
            reference = await inspector.get_default_branch()
            result.branch = reference.default_branch
            content = await inspector.fetch_file_raw(RECIPE_PATH, reference.default_branch)
            if content is None and RECIPE_PATH in await inspector.list_root_files(reference.default_branch):
                # Listed but unreadable: never overwrite a file we could not see
                raise RepositoryUnreachable(
                    f"Dockerfile exists in {owner}/{repo} but could not be read (github_fetch_failed)"
                )
            mode = "fix" if content is not None else "generate"
            outcome = await engine.repair(
                reference, token_present=True, mode=mode, current_content=content, force=False
            )
        except PreflightError as e:
            logger.error(f"Auto-fix of {owner}/{repo} failed: {e.message}", exc_info=True)
            result.message = e.finding()
            result.steps.append(StepResult(name="commit", outcome="error", detail=e.message))
            return result.model_dump()

    result.commit_sha = outcome.commit_sha
    result.verified_commit = outcome.verified
    result.files_modified = outcome.files_written

    if not outcome.files_written:
        result.success = True
        result.message = "Dockerfile already valid, no commit needed"
        result.steps.append(StepResult(name="commit", outcome="skipped", detail=result.message))
        return result.model_dump()

    result.commit_url = commit_url(owner, repo, outcome.commit_sha)
    result.steps.append(StepResult(name="commit", outcome="success", detail=f"Commit {outcome.commit_sha[:7]}"))
    if outcome.verified:
        result.steps.append(StepResult(name="verify", outcome="success", detail=outcome.analysis.detail))
    else:
        detail = outcome.analysis.detail if outcome.analysis else "Dockerfile could not be re-read"
        result.steps.append(StepResult(name="verify", outcome="error", detail=detail))

    result.success = outcome.verified
    result.message = (
        f"Dockerfile fixed on {result.branch}"
        if outcome.verified
        else f"[VerificationFailed] Commit {outcome.commit_sha[:7]} pushed but the Dockerfile is still invalid"
    )

    if auto_redeploy and coolify_app_uuid and server_id:
        if not outcome.verified:
            result.steps.append(
                StepResult(
                    name="redeploy",
                    outcome="skipped",
                    detail=f"[VerificationFailed] Not redeploying unverified commit {outcome.commit_sha[:7]}",
                )
            )
            return result.model_dump()

        try:
            record = load_server(server_id, config)
            coolify = open_coolify_client(record, config)
        except PreflightError as e:
            result.redeploy = RedeployResult(branch=result.branch, commit_sha=outcome.commit_sha, message=e.finding())
            result.steps.append(StepResult(name="redeploy", outcome="error", detail=e.message))
            return result.model_dump()

        try:
            result.redeploy = await redeploy_application(
                coolify, coolify_app_uuid, result.branch, outcome.commit_sha
            )
        finally:
            await coolify.aclose()

        if not result.redeploy.success:
            outcome_name = "error"
        elif result.redeploy.patch_verified:
            outcome_name = "success"
        else:
            outcome_name = "degraded"
        result.steps.append(StepResult(name="redeploy", outcome=outcome_name, detail=result.redeploy.message))

    return result.model_dump()
