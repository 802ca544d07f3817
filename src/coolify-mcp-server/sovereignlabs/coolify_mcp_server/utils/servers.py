"""
Stored Coolify server credentials.

Server records live in a JSON file keyed by server id:

    {"srv-1": {"name": "vps", "coolify_url": "203.0.113.7", "coolify_token": "..."}}
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from sovereignlabs.coolify_mcp_server.models.coolify import CoolifyServerRecord
from sovereignlabs.coolify_mcp_server.utils.config import get_config
from sovereignlabs.coolify_mcp_server.utils.errors import ServerNotFound

logger = logging.getLogger(__name__)


def load_server(server_id: str, config: Optional[Dict[str, Any]] = None) -> CoolifyServerRecord:
    """
    Loads the stored credentials of one server.

    Args:
        server_id: Identifier of the server record
        config: Server configuration (loaded from the environment if omitted)

    Returns:
        CoolifyServerRecord, possibly without URL/token if Coolify is not set up

    Raises:
        ServerNotFound: If the store cannot be read or has no such record
    """
    config = config or get_config()
    path = config.get("servers_file")

    if not path or not os.path.exists(path):
        raise ServerNotFound(f"Server store not found at {path!r}")

    try:
        with open(path, "r") as f:
            servers = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read server store {path}: {e}")
        raise ServerNotFound(f"Server store at {path!r} is unreadable: {e}") from e

    record = servers.get(server_id) if isinstance(servers, dict) else None
    if not isinstance(record, dict):
        raise ServerNotFound(f"Server {server_id!r} not found")

    return CoolifyServerRecord(
        server_id=server_id,
        name=record.get("name"),
        coolify_url=record.get("coolify_url"),
        coolify_token=record.get("coolify_token"),
    )
