"""
Pre-deploy module for Coolify MCP Server.
This module provides the tool that checks and prepares a repository for deployment.
"""
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from sovereignlabs.coolify_mcp_server.api.pre_deploy import pre_deploy_check
from sovereignlabs.coolify_mcp_server.utils.config import get_config
from sovereignlabs.coolify_mcp_server.utils.security import PERMISSION_WRITE, secure_tool


def register_module(mcp: FastMCP) -> None:
    """Register pre-deploy module tools with the MCP server."""
    config = get_config()
    # Runs that may commit a Dockerfile or create an application need ALLOW_WRITE
    checked_pre_deploy_check = secure_tool(config, PERMISSION_WRITE, "pre_deploy_check")(pre_deploy_check)

    @mcp.tool(name="pre_deploy_check")
    async def mcp_pre_deploy_check(
        server_id: str = Field(
            ...,
            description="Identifier of the server record holding the Coolify URL and token",
        ),
        github_repo_url: str = Field(
            ...,
            description="GitHub repository URL (https or git@ form)",
        ),
        project_name: str = Field(
            ...,
            description="Name of the Coolify project and application",
        ),
        domain: Optional[str] = Field(
            default=None,
            description="Domain to attach to the application",
        ),
        env_vars: Optional[Dict[str, str]] = Field(
            default=None,
            description="Environment variables to inject when deploying",
        ),
        auto_deploy: bool = Field(
            default=False,
            description="Create the Coolify application and start a build if every check passes",
        ),
        skip_dockerfile_fix: bool = Field(
            default=False,
            description="Never commit a corrected Dockerfile, only report",
        ),
    ) -> Dict[str, Any]:
        """
        Start here before deploying a GitHub repository to Coolify.

        Checks the Coolify connection and servers, GitHub access and push rights,
        package.json, and the Dockerfile. A Dockerfile that runs npm install
        before copying package.json is corrected with a commit on the default
        branch, then re-read from GitHub to prove the fix landed.

        USAGE INSTRUCTIONS:
        1. Provide the server id, the repository URL and a project name
        2. Read `ready`: only true when every check passed and the Dockerfile was verified
        3. If not ready, `blocking_errors` names the check that failed
        4. Set auto_deploy to create the application and build in the same call
        5. With skip_dockerfile_fix and without auto_deploy the check is read-only
           and runs even when ALLOW_WRITE is off

        Parameters:
            server_id: Server record holding the Coolify credentials
            github_repo_url: Repository to deploy
            project_name: Coolify project name
            domain: Optional domain
            env_vars: Optional environment variables
            auto_deploy: Provision and deploy when ready
            skip_dockerfile_fix: Report Dockerfile problems without committing a fix

        Returns:
            Dictionary containing readiness, per-check results and Dockerfile proof
        """
        read_only = skip_dockerfile_fix is True and auto_deploy is not True
        run = pre_deploy_check if read_only else checked_pre_deploy_check
        return await run(
            server_id=server_id,
            github_repo_url=github_repo_url,
            project_name=project_name,
            domain=domain,
            env_vars=env_vars,
            auto_deploy=auto_deploy,
            skip_dockerfile_fix=skip_dockerfile_fix,
        )
