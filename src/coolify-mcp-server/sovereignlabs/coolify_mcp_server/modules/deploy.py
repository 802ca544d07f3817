"""
Deploy module for Coolify MCP Server.
This module provides tools to configure Coolify applications and diagnose the connection.
"""
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from sovereignlabs.coolify_mcp_server.api.deploy import configure_coolify_app
from sovereignlabs.coolify_mcp_server.api.orchestrator_prober import test_connection
from sovereignlabs.coolify_mcp_server.utils.config import get_config
from sovereignlabs.coolify_mcp_server.utils.errors import PreDeployRequestError
from sovereignlabs.coolify_mcp_server.utils.security import PERMISSION_WRITE, secure_tool


def register_module(mcp: FastMCP) -> None:
    """Register deploy module tools with the MCP server."""
    config = get_config()

    @mcp.tool(name="configure_coolify_app")
    @secure_tool(config, PERMISSION_WRITE, "configure_coolify_app")
    async def mcp_configure_coolify_app(
        server_id: str = Field(
            ...,
            description="Server record holding the Coolify URL and token",
        ),
        project_name: str = Field(
            ...,
            description="Name of the Coolify project and application",
        ),
        github_repo_url: str = Field(
            ...,
            description="GitHub repository to build",
        ),
        domain: Optional[str] = Field(
            default=None,
            description="Domain to attach to the application",
        ),
        env_vars: Optional[Dict[str, str]] = Field(
            default=None,
            description="Environment variables; VITE_ variables are made available at build time",
        ),
        auto_deploy: bool = Field(
            default=True,
            description="Trigger the first build after configuration",
        ),
        git_branch: Optional[str] = Field(
            default=None,
            description="Branch to build (default branch if omitted)",
        ),
        git_commit_sha: Optional[str] = Field(
            default=None,
            description="Commit to build (branch head if omitted)",
        ),
        force_rebuild: bool = Field(
            default=True,
            description="Force a rebuild",
        ),
        force_no_cache: bool = Field(
            default=True,
            description="Disable the Docker build cache",
        ),
    ) -> Dict[str, Any]:
        """
        Creates and configures a Coolify application for a GitHub repository.

        Run pre_deploy_check first: this tool does not check the Dockerfile.

        The application uses the dockerfile build pack on port 80. Every step is
        reported in `steps`; a `degraded` step means Coolify accepted a reduced
        version of the requested configuration.

        Returns:
            Dictionary containing the application, project and deployment identifiers
        """
        return await configure_coolify_app(
            server_id=server_id,
            project_name=project_name,
            github_repo_url=github_repo_url,
            domain=domain,
            env_vars=env_vars,
            auto_deploy=auto_deploy,
            git_branch=git_branch,
            git_commit_sha=git_commit_sha,
            force_rebuild=force_rebuild,
            force_no_cache=force_no_cache,
        )

    @mcp.tool(name="test_coolify_connection")
    async def mcp_test_coolify_connection(
        server_id: str = Field(
            ...,
            description="Server record holding the Coolify URL and token",
        ),
    ) -> Dict[str, Any]:
        """
        Diagnoses the connection to a Coolify instance.

        Checks the stored URL for common mistakes (missing port 8000, port 80),
        reads the Coolify version and lists its servers.

        Returns:
            Dictionary containing the URL verdict, version, servers and findings
        """
        try:
            return await test_connection(server_id)
        except PreDeployRequestError as e:
            return {"error": e.message, "status": "failed"}
