"""
Auto-fix module for Coolify MCP Server.
"""
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from sovereignlabs.coolify_mcp_server.api.auto_fix import auto_fix_dockerfile
from sovereignlabs.coolify_mcp_server.utils.config import get_config
from sovereignlabs.coolify_mcp_server.utils.security import PERMISSION_WRITE, secure_tool


def register_module(mcp: FastMCP) -> None:
    """Register auto-fix module tools with the MCP server."""
    config = get_config()

    @mcp.tool(name="auto_fix_dockerfile")
    @secure_tool(config, PERMISSION_WRITE, "auto_fix_dockerfile")
    async def mcp_auto_fix_dockerfile(
        github_repo_url: str = Field(
            ...,
            description="GitHub repository whose Dockerfile should be corrected",
        ),
        server_id: Optional[str] = Field(
            default=None,
            description="Server record holding the Coolify credentials (needed for redeploy)",
        ),
        coolify_app_uuid: Optional[str] = Field(
            default=None,
            description="Coolify application to redeploy after the fix",
        ),
        auto_redeploy: bool = Field(
            default=False,
            description="Redeploy the Coolify application on the fixed commit",
        ),
    ) -> Dict[str, Any]:
        """
        Commits a corrected Dockerfile and nginx.conf to the default branch.

        Use this when a Coolify build fails because dependencies are missing:
        the usual cause is `RUN npm install` running before `COPY package.json`.
        Nothing is committed if the Dockerfile is already valid.

        Returns:
            Dictionary containing the commit, its verification and the redeploy outcome
        """
        return await auto_fix_dockerfile(
            github_repo_url=github_repo_url,
            server_id=server_id,
            coolify_app_uuid=coolify_app_uuid,
            auto_redeploy=auto_redeploy,
        )
