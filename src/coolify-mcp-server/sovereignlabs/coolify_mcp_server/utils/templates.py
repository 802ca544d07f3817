"""
Template utilities for the Coolify MCP Server.
"""

import logging
import os
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader

logger = logging.getLogger(__name__)

DOCKERFILE_TEMPLATE = "Dockerfile.vite"
NGINX_TEMPLATE = "nginx.conf"

# Values every repair renders with; the port must match ports_exposes on the application
RECIPE_DEFAULTS: Dict[str, Any] = {
    "node_version": "20",
    "port": 80,
    "build_args": [
        "VITE_SUPABASE_URL",
        "VITE_SUPABASE_PUBLISHABLE_KEY",
        "VITE_SUPABASE_PROJECT_ID",
        "VITE_SUPABASE_ANON_KEY",
    ],
}


def get_templates_dir() -> str:
    """
    Gets the path to the templates directory.

    Returns:
        Path to the templates directory
    """
    current_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(current_dir, "templates")


def render_template(name: str, **params: Any) -> str:
    """
    Renders a template from the templates directory.

    Args:
        name: File name inside the templates directory
        **params: Values overriding RECIPE_DEFAULTS

    Returns:
        Rendered content
    """
    env = Environment(
        loader=FileSystemLoader(get_templates_dir()),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    template = env.get_template(name)
    logger.debug(f"Rendering template {name}")
    return template.render(**{**RECIPE_DEFAULTS, **params})


def recipe_repair_files() -> Dict[str, str]:
    """Files written by a Dockerfile repair, keyed by repository path."""
    return {
        "Dockerfile": render_template(DOCKERFILE_TEMPLATE),
        "nginx.conf": render_template(NGINX_TEMPLATE),
    }
