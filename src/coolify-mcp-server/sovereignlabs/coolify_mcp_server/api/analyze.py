"""
API for analyzing a Dockerfile for the install-before-copy ordering defect.
"""

import logging
from typing import Any, Dict, Optional

from sovereignlabs.coolify_mcp_server.api.recipe_analyzer import analyze_recipe
from sovereignlabs.coolify_mcp_server.api.recipe_repair import RECIPE_PATH
from sovereignlabs.coolify_mcp_server.api.source_inspector import SourceInspector
from sovereignlabs.coolify_mcp_server.utils.config import get_config
from sovereignlabs.coolify_mcp_server.utils.errors import PreflightError
from sovereignlabs.coolify_mcp_server.utils.github import create_github_client, parse_github_url

logger = logging.getLogger(__name__)


async def analyze_dockerfile(
    content: Optional[str] = None, github_repo_url: Optional[str] = None
) -> Dict[str, Any]:
    """
    Analyzes Dockerfile text, or the Dockerfile on a repository's default branch.

    Args:
        content: Dockerfile text (takes precedence over the repository)
        github_repo_url: Repository whose Dockerfile should be analyzed

    Returns:
        Dict containing the analysis and where the content came from
    """
    if content is None and not github_repo_url:
        return {
            "error": "Provide either content or github_repo_url",
            "status": "failed",
        }

    source = "content"
    branch = None
    if content is None:
        config = get_config()
        try:
            owner, repo = parse_github_url(github_repo_url)
            async with create_github_client(config.get("github_token"), config["http_timeout"]) as github:
                inspector = SourceInspector(owner, repo, github, retries=config["read_retries"])
                reference = await inspector.get_default_branch()
                branch = reference.default_branch
                content = await inspector.fetch_file_raw(RECIPE_PATH, branch)
        except PreflightError as e:
            logger.error(f"Could not read Dockerfile from {github_repo_url}: {e.message}")
            return {"error": e.finding(), "status": "failed"}

        if content is None:
            return {
                "error": f"No readable Dockerfile on {owner}/{repo}@{branch}",
                "status": "failed",
            }
        source = f"{owner}/{repo}@{branch}"

    analysis = analyze_recipe(content)
    return {
        "status": "success",
        "source": source,
        "analysis": analysis.model_dump(),
    }
