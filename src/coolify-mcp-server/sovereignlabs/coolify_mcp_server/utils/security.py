"""
Security utilities for the Coolify MCP Server.

Tools that commit to GitHub or create resources in Coolify are gated behind
the ``allow-write`` setting; request values that end up in Coolify are checked
before any call is made.
"""

import functools
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, Literal, Optional

logger = logging.getLogger(__name__)

PERMISSION_WRITE = "write"
PERMISSION_NONE = "none"

PermissionType = Literal["write", "none"]

PROJECT_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9 .\-_]{0,99}$")
ENV_VAR_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class SecurityError(Exception):
    """Raised when a tool is called without the permission it needs."""
    pass


class ValidationError(Exception):
    """Raised when a request value would be rejected or misused by Coolify."""
    pass


def validate_project_name(project_name: str) -> bool:
    """
    Validates a Coolify project name.

    Letters, digits, spaces, dots, hyphens and underscores, starting with a
    letter or digit, at most 100 characters.

    Raises:
        ValidationError: If the name is not accepted
    """
    if not PROJECT_NAME_PATTERN.match(project_name or ""):
        raise ValidationError(
            f"Project name '{project_name}' contains invalid characters. "
            "Only alphanumeric characters, spaces, dots, hyphens, and underscores are allowed."
        )
    return True


def validate_env_var_keys(keys: Iterable[str]) -> bool:
    """
    Validates environment variable names before they are sent to Coolify.

    Raises:
        ValidationError: Naming every invalid key
    """
    invalid = [key for key in keys if not ENV_VAR_KEY_PATTERN.match(key or "")]
    if invalid:
        raise ValidationError(
            f"Invalid environment variable name(s): {', '.join(repr(key) for key in invalid)}. "
            "Use letters, digits and underscores, not starting with a digit."
        )
    return True


def check_permission(config: Dict[str, Any], permission_type: PermissionType) -> bool:
    """
    Checks that the server configuration allows this kind of tool.

    Raises:
        SecurityError: If a write tool is called while writes are disabled
    """
    if permission_type == PERMISSION_WRITE and not config.get("allow-write", False):
        raise SecurityError(
            "Write operations are disabled for security. "
            "Set ALLOW_WRITE=true in your environment to let this server commit to "
            "GitHub and create applications in Coolify."
        )
    return True


def secure_tool(config: Dict[str, Any], permission_type: PermissionType, tool_name: Optional[str] = None):
    """
    Wraps an async MCP tool so it answers with a failed status instead of
    running when the permission check does not pass.

    Args:
        config: Server configuration holding ``allow-write``
        permission_type: Permission the tool needs
        tool_name: Name used in the log line (function name if omitted)
    """
    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        name = tool_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                check_permission(config, permission_type)
            except SecurityError as e:
                logger.warning(f"Refused {name}: {e}")
                return {
                    "error": str(e),
                    "status": "failed",
                    "message": "Security validation failed. Please check your environment configuration.",
                }
            return await func(*args, **kwargs)
        return wrapper
    return decorator
