"""
Client for the Coolify management API and the connection diagnostic built on it.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from sovereignlabs.coolify_mcp_server.models.coolify import (
    CoolifyApplication,
    CoolifyDeployment,
    CoolifyProject,
    CoolifyServer,
    CoolifyServerRecord,
)
from sovereignlabs.coolify_mcp_server.utils.config import get_config
from sovereignlabs.coolify_mcp_server.utils.coolify import (
    create_coolify_client,
    normalize_coolify_url,
    validate_coolify_url,
)
from sovereignlabs.coolify_mcp_server.utils.errors import (
    NoComputeNodesAvailable,
    OrchestratorUnreachable,
    PreflightError,
    ProvisioningFailed,
    UnexpectedResponseFormat,
)
from sovereignlabs.coolify_mcp_server.utils.http import (
    excerpt,
    get_with_retry,
    looks_like_html,
    parse_json_response,
    parse_model,
)
from sovereignlabs.coolify_mcp_server.utils.servers import load_server

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = "production"
PROJECT_DESCRIPTION = "Deployed via coolify-mcp-server"


class CoolifyClient:
    """
    Thin typed wrapper over the Coolify ``/api/v1`` endpoints.

    Reads go through the retrying GET helper and raise OrchestratorUnreachable
    when the API cannot be reached. Writes are single-attempt and raise
    ProvisioningFailed.
    """

    def __init__(self, client: httpx.AsyncClient, retries: int = 2):
        self.client = client
        self.retries = retries

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get(self, path: str, context: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await get_with_retry(self.client, path, retries=self.retries, **kwargs)
        except httpx.HTTPError as e:
            raise OrchestratorUnreachable(f"{context}: Coolify unreachable ({e.__class__.__name__}: {e})") from e

        if response.status_code in (401, 403):
            raise OrchestratorUnreachable(
                f"{context}: Coolify rejected the API token ({response.status_code})"
            )
        if response.status_code != 200:
            raise OrchestratorUnreachable(
                f"{context}: Coolify API error {response.status_code}: {excerpt(response.text)}"
            )
        return response

    async def _write(self, method: str, path: str, payload: Dict[str, Any], context: str) -> httpx.Response:
        try:
            response = await self.client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            raise ProvisioningFailed(f"{context} failed: {e}") from e

        if response.status_code not in (200, 201):
            raise ProvisioningFailed(
                f"{context} failed ({response.status_code}): {excerpt(response.text)}"
            )
        return response

    async def check_version(self) -> str:
        """
        Checks reachability and token validity.

        The version endpoint answers in plain text (``4.0.0-beta.458``), not JSON.

        Raises:
            OrchestratorUnreachable: If the API cannot be reached or rejects the token
            UnexpectedResponseFormat: If an HTML page is served instead of the version
        """
        response = await self._get("/version", "Version check")
        version = response.text.strip().strip('"')

        if not version or looks_like_html(version):
            raise UnexpectedResponseFormat(
                "Version check: HTML response received instead of a version string. "
                "Is a reverse proxy answering on this port?",
                excerpt(response.text),
            )

        logger.info(f"Connected to Coolify v{version}")
        return version

    async def list_compute_nodes(self) -> List[CoolifyServer]:
        """
        Lists servers registered in Coolify.

        Raises:
            NoComputeNodesAvailable: If Coolify has no servers
        """
        response = await self._get("/servers", "Server listing")
        data = parse_json_response(response, "Server listing")
        if not isinstance(data, list):
            raise UnexpectedResponseFormat(
                "Server listing: expected a JSON array", excerpt(response.text)
            )

        nodes = [parse_model(CoolifyServer, entry, "Server listing") for entry in data]
        if not nodes:
            raise NoComputeNodesAvailable(
                "No servers found in Coolify. Add a server in Coolify before deploying."
            )
        return nodes

    async def list_projects(self) -> List[CoolifyProject]:
        response = await self._get("/projects", "Project listing")
        data = parse_json_response(response, "Project listing")
        if not isinstance(data, list):
            raise UnexpectedResponseFormat("Project listing: expected a JSON array", excerpt(response.text))
        return [parse_model(CoolifyProject, entry, "Project listing") for entry in data]

    async def find_or_create_project(self, name: str) -> CoolifyProject:
        """Returns the project with this name, creating it if none exists."""
        try:
            existing = await self.list_projects()
        except PreflightError as e:
            logger.warning(f"Could not list projects, creating a new one: {e.message}")
            existing = []

        for project in existing:
            if project.name == name:
                logger.info(f"Reusing Coolify project {name} ({project.uuid})")
                return project

        response = await self._write(
            "POST", "/projects", {"name": name, "description": PROJECT_DESCRIPTION}, "Project creation"
        )
        try:
            project = parse_model(CoolifyProject, parse_json_response(response, "Project creation"), "Project creation")
        except UnexpectedResponseFormat as e:
            raise ProvisioningFailed(e.message) from e
        logger.info(f"Created Coolify project {name} ({project.uuid})")
        return project.model_copy(update={"name": project.name or name})

    async def create_application(self, payload: Dict[str, Any]) -> CoolifyApplication:
        response = await self._write("POST", "/applications/public", payload, "Application creation")
        try:
            return parse_model(
                CoolifyApplication, parse_json_response(response, "Application creation"), "Application creation"
            )
        except UnexpectedResponseFormat as e:
            raise ProvisioningFailed(e.message) from e

    async def patch_application(self, uuid: str, payload: Dict[str, Any]) -> None:
        await self._write("PATCH", f"/applications/{uuid}", payload, "Application update")

    async def add_env_var(self, uuid: str, key: str, value: str, is_build_time: bool) -> None:
        payload = {
            "key": key,
            "value": str(value),
            "is_build_time": is_build_time,
            "is_preview": False,
        }
        await self._write("POST", f"/applications/{uuid}/envs", payload, f"Env var {key}")

    async def get_application(self, uuid: str) -> CoolifyApplication:
        response = await self._get(f"/applications/{uuid}", "Application read")
        return parse_model(
            CoolifyApplication, parse_json_response(response, "Application read"), "Application read"
        )

    async def trigger_deploy(self, uuid: str, force: bool = True, no_cache: bool = False) -> Optional[str]:
        """
        Triggers a build and returns the deployment identifier, if Coolify reports one.

        The deploy trigger is a GET on Coolify's side but starts a build, so
        it is not retried.
        """
        params = {"uuid": uuid, "force": str(force).lower()}
        if no_cache:
            params["no_cache"] = "true"

        try:
            response = await self.client.get("/deploy", params=params)
        except httpx.HTTPError as e:
            raise ProvisioningFailed(f"Deploy trigger failed: {e}") from e

        if response.status_code not in (200, 201):
            raise ProvisioningFailed(
                f"Deploy trigger failed ({response.status_code}): {excerpt(response.text)}"
            )

        data = parse_json_response(response, "Deploy trigger")
        deployment = parse_model(CoolifyDeployment, data if isinstance(data, dict) else {}, "Deploy trigger")
        deployment_uuid = deployment.resolved_uuid()
        logger.info(f"Deployment triggered for {uuid}: {deployment_uuid or 'no deployment id returned'}")
        return deployment_uuid


def open_coolify_client(record: CoolifyServerRecord, config: Dict[str, Any]) -> CoolifyClient:
    """Builds a CoolifyClient for a stored server record."""
    if not record.configured:
        raise OrchestratorUnreachable(
            f"Coolify is not configured for server {record.server_id}: URL or API token missing"
        )
    client = create_coolify_client(record.coolify_url, record.coolify_token, config["http_timeout"])
    return CoolifyClient(client, retries=config["read_retries"])


async def test_connection(server_id: str, client: Optional[CoolifyClient] = None) -> Dict[str, Any]:
    """
    Diagnoses the Coolify connection of a stored server.

    Args:
        server_id: Identifier of the server record
        client: Optional pre-built client (used by tests)

    Returns:
        Dict with the URL validation, normalized URL, version and compute nodes
    """
    config = get_config()
    record = load_server(server_id, config)

    report: Dict[str, Any] = {
        "server_id": server_id,
        "connected": False,
        "url_validation": None,
        "normalized_url": None,
        "version": None,
        "compute_nodes": [],
        "findings": [],
    }

    if record.coolify_url:
        validation = validate_coolify_url(record.coolify_url)
        report["url_validation"] = validation.model_dump()
        if validation.error:
            report["findings"].append(validation.error)
        elif validation.warning:
            report["findings"].append(validation.warning)

    owned = client is None
    try:
        if client is None:
            client = open_coolify_client(record, config)
        report["normalized_url"] = normalize_coolify_url(record.coolify_url)

        report["version"] = await client.check_version()
        report["connected"] = True

        nodes = await client.list_compute_nodes()
        report["compute_nodes"] = [node.model_dump() for node in nodes]
    except PreflightError as e:
        logger.warning(f"Coolify connection test for {server_id} failed: {e.message}")
        report["findings"].append(e.finding())
    finally:
        if owned and client is not None:
            await client.aclose()

    return report
