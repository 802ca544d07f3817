"""
Configuration utilities for the Coolify MCP Server.
"""

import logging
import os
from typing import Any, Dict

logger = logging.getLogger(__name__)


def _float_env(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={value!r}, using {default}")
        return default


def get_config() -> Dict[str, Any]:
    """
    Gets the configuration for the Coolify MCP Server.

    Returns:
        Dict containing configuration values
    """
    config = {
        "github_token": os.environ.get("GITHUB_PERSONAL_ACCESS_TOKEN") or None,
        "servers_file": os.environ.get("COOLIFY_SERVERS_FILE", "coolify_servers.json"),
        "supabase_url": os.environ.get("SUPABASE_URL"),
        "supabase_anon_key": os.environ.get("SUPABASE_ANON_KEY"),
        "http_timeout": _float_env("PREFLIGHT_HTTP_TIMEOUT", 15.0),
        "pipeline_timeout": _float_env("PREFLIGHT_PIPELINE_TIMEOUT", 120.0),
        "read_retries": int(_float_env("PREFLIGHT_READ_RETRIES", 2)),
        "verify_delay": _float_env("PREFLIGHT_VERIFY_DELAY", 2.0),
        "allow-write": os.environ.get("ALLOW_WRITE", "false").lower() == "true",
        "log_level": os.environ.get("FASTMCP_LOG_LEVEL", "INFO"),
    }

    # Secrets stay out of the log
    loggable = {k: v for k, v in config.items() if k not in ("github_token", "supabase_anon_key")}
    logger.debug(f"Loaded configuration: {loggable}")
    return config
