"""
Analyze module for Coolify MCP Server.
This module provides a read-only tool to check a Dockerfile's instruction order.
"""
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from sovereignlabs.coolify_mcp_server.api.analyze import analyze_dockerfile


def register_module(mcp: FastMCP) -> None:
    """Register analyze module tools with the MCP server."""

    @mcp.tool(name="analyze_dockerfile")
    async def mcp_analyze_dockerfile(
        content: Optional[str] = Field(
            default=None,
            description="Dockerfile text to analyze",
        ),
        github_repo_url: Optional[str] = Field(
            default=None,
            description="Repository whose Dockerfile should be analyzed (used when no content is given)",
        ),
    ) -> Dict[str, Any]:
        """
        Checks whether a Dockerfile copies package.json before running npm install.

        Returns the line numbers of both instructions as evidence. This tool
        never writes anything.

        Returns:
            Dictionary containing the analysis
        """
        return await analyze_dockerfile(content=content, github_repo_url=github_repo_url)
