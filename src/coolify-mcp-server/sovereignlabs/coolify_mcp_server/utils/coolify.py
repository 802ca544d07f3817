"""
Coolify utility functions.
"""

import logging
import re
from typing import Dict, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from sovereignlabs.coolify_mcp_server.models.coolify import CoolifyUrlValidation
from sovereignlabs.coolify_mcp_server.utils.errors import OrchestratorUnreachable
from sovereignlabs.coolify_mcp_server.utils.http import create_client

logger = logging.getLogger(__name__)

# Coolify's management API listens here; port 80 belongs to the proxy it runs
COOLIFY_MANAGEMENT_PORT = 8000

API_PREFIX = "/api/v1"


def _with_scheme(url: str) -> str:
    url = url.strip()
    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = f"http://{url}"
    return url.rstrip("/")


def normalize_coolify_url(url: str) -> str:
    """
    Normalizes a Coolify base URL.

    A bare host or IP gets an ``http://`` scheme, and plain-http URLs without
    an explicit port get the management port appended. HTTPS without a port
    is left alone since it is served through a TLS reverse proxy.

    Args:
        url: URL as entered by the user

    Returns:
        Normalized URL without trailing slash

    Raises:
        OrchestratorUnreachable: If the URL cannot be parsed
    """
    if not url or not url.strip():
        raise OrchestratorUnreachable("Coolify URL is empty")

    parts = urlsplit(_with_scheme(url))
    try:
        port = parts.port
    except ValueError:
        raise OrchestratorUnreachable(f"Invalid Coolify URL: {url!r}") from None
    if not parts.hostname:
        raise OrchestratorUnreachable(f"Invalid Coolify URL: {url!r}")

    scheme = parts.scheme.lower()
    netloc = parts.netloc
    if port is None and scheme == "http":
        netloc = f"{netloc}:{COOLIFY_MANAGEMENT_PORT}"

    return urlunsplit((scheme, netloc, parts.path, parts.query, parts.fragment)).rstrip("/")


def validate_coolify_url(url: str) -> CoolifyUrlValidation:
    """
    Checks a Coolify URL for the mistakes users commonly make and suggests a fix.

    Args:
        url: URL as entered by the user

    Returns:
        CoolifyUrlValidation with an error or warning and a suggested URL
    """
    if not url or not url.strip():
        return CoolifyUrlValidation(is_valid=True, normalized_url="")

    trimmed = url.strip().rstrip("/")
    parts = urlsplit(_with_scheme(trimmed))
    try:
        port = parts.port
    except ValueError:
        port = -1
    if port == -1 or not parts.hostname:
        return CoolifyUrlValidation(
            is_valid=False, normalized_url=trimmed, error="Invalid URL format"
        )

    scheme = parts.scheme.lower()
    suggested = f"{scheme}://{parts.hostname}:{COOLIFY_MANAGEMENT_PORT}"

    # normalize_coolify_url appends the management port, so this is only worth a warning
    if scheme == "http" and port is None:
        return CoolifyUrlValidation(
            is_valid=True,
            normalized_url=suggested,
            warning=f"No port given for Coolify URL {trimmed}, normalized to {suggested}",
            suggested_url=suggested,
        )
    if scheme == "http" and port == 80:
        return CoolifyUrlValidation(
            is_valid=False,
            normalized_url=trimmed,
            error=f"Coolify usually listens on port {COOLIFY_MANAGEMENT_PORT}, not port 80",
            suggested_url=suggested,
        )
    if scheme == "http" and port != COOLIFY_MANAGEMENT_PORT:
        return CoolifyUrlValidation(
            is_valid=True,
            normalized_url=trimmed,
            warning=f"Non-standard port detected ({port}). Coolify usually listens on port {COOLIFY_MANAGEMENT_PORT}.",
            suggested_url=suggested,
        )
    return CoolifyUrlValidation(is_valid=True, normalized_url=trimmed)


def coolify_headers(token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


def create_coolify_client(base_url: str, token: str, timeout: float) -> httpx.AsyncClient:
    """Creates a Coolify API client rooted at ``{normalized base}/api/v1``."""
    normalized = normalize_coolify_url(base_url)
    logger.info(f"Using Coolify API at {normalized}")
    return create_client(timeout, coolify_headers(token), base_url=f"{normalized}{API_PREFIX}")


def redact(text: str, secret: Optional[str]) -> str:
    """Removes a secret from text before it is logged or returned."""
    if not secret:
        return text
    return text.replace(secret, "***")
