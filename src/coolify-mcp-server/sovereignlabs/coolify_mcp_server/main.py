#!/usr/bin/env python3
"""
Coolify Pre-Deploy MCP Server - Main entry point
"""

import logging
import os
import sys

from mcp.server.fastmcp import FastMCP

from sovereignlabs.coolify_mcp_server.modules import analyze, auto_fix, deploy, pre_deploy
from sovereignlabs.coolify_mcp_server.utils.config import get_config

# Configure logging
logging.basicConfig(
    level=os.environ.get("FASTMCP_LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("coolify-mcp-server")

# Create the MCP server
mcp = FastMCP(
    name="Coolify Pre-Deploy MCP Server",
    instructions="""Use this server to prepare GitHub repositories for deployment to a self-hosted Coolify instance.

WORKFLOW:
1. test_coolify_connection:
   - Check the stored Coolify URL (port 8000 for plain HTTP)
   - Confirm the API token works and Coolify has at least one server

2. pre_deploy_check:
   - Check Coolify, GitHub access and push rights, package.json and the Dockerfile
   - Correct a Dockerfile that runs npm install before COPY package.json
   - Re-read the Dockerfile from GitHub to prove the fix landed
   - With auto_deploy, create the Coolify application and start a build

3. configure_coolify_app:
   - Create or reuse the Coolify project and application
   - Set the dockerfile build pack, branch and commit, inject environment variables

4. auto_fix_dockerfile:
   - Correct the Dockerfile of an already deployed application and redeploy it

IMPORTANT:
- Only trust `ready: true` from pre_deploy_check; every other outcome names the failing check
- Write tools require ALLOW_WRITE=true in the server environment
- Commits go to the repository's default branch
""",
)

# Register modules
pre_deploy.register_module(mcp)
auto_fix.register_module(mcp)
deploy.register_module(mcp)
analyze.register_module(mcp)


# Register prompt patterns
@mcp.prompt("pre deploy")
def pre_deploy_prompt():
    """User wants to check a repository before deploying it"""
    return ["pre_deploy_check"]


@mcp.prompt("is this ready to deploy")
def ready_to_deploy_prompt():
    """User wants to know whether a repository can be deployed"""
    return ["pre_deploy_check"]


@mcp.prompt("deploy to coolify")
def deploy_to_coolify_prompt():
    """User wants to deploy an application to Coolify"""
    return ["pre_deploy_check", "configure_coolify_app"]


@mcp.prompt("deploy to my vps")
def deploy_to_vps_prompt():
    """User wants to deploy an application to their own server"""
    return ["pre_deploy_check", "configure_coolify_app"]


@mcp.prompt("self host")
def self_host_prompt():
    """User wants to host an application on their own server"""
    return ["pre_deploy_check", "configure_coolify_app"]


@mcp.prompt("fix dockerfile")
def fix_dockerfile_prompt():
    """User wants to fix a broken Dockerfile"""
    return ["analyze_dockerfile", "auto_fix_dockerfile"]


@mcp.prompt("npm install failed")
def npm_install_failed_prompt():
    """User's build fails because dependencies are missing"""
    return ["analyze_dockerfile", "auto_fix_dockerfile"]


@mcp.prompt("cannot find module")
def cannot_find_module_prompt():
    """User's build cannot find installed packages"""
    return ["analyze_dockerfile", "auto_fix_dockerfile"]


@mcp.prompt("check dockerfile")
def check_dockerfile_prompt():
    """User wants to check a Dockerfile"""
    return ["analyze_dockerfile"]


@mcp.prompt("coolify not reachable")
def coolify_not_reachable_prompt():
    """User cannot connect to Coolify"""
    return ["test_coolify_connection"]


@mcp.prompt("test coolify")
def test_coolify_prompt():
    """User wants to test the Coolify connection"""
    return ["test_coolify_connection"]


@mcp.prompt("redeploy")
def redeploy_prompt():
    """User wants to redeploy an application"""
    return ["auto_fix_dockerfile"]


def main() -> None:
    """Main entry point for the Coolify MCP Server."""
    try:
        config = get_config()
        logger.info(f"Server started, write operations {'enabled' if config['allow-write'] else 'disabled'}")
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
