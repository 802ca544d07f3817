"""
Unit tests for the Coolify API client and connection diagnostic.
"""

import unittest
from unittest.mock import patch

import httpx

from sovereignlabs.coolify_mcp_server.api import orchestrator_prober
from sovereignlabs.coolify_mcp_server.api.orchestrator_prober import CoolifyClient, open_coolify_client
from sovereignlabs.coolify_mcp_server.models.coolify import CoolifyServerRecord
from sovereignlabs.coolify_mcp_server.utils.errors import (
    NoComputeNodesAvailable,
    OrchestratorUnreachable,
    ProvisioningFailed,
    ServerNotFound,
    UnexpectedResponseFormat,
)

from fakes import FakeCoolify

PROBER = "sovereignlabs.coolify_mcp_server.api.orchestrator_prober"

CONFIG = {"http_timeout": 5, "read_retries": 0, "servers_file": "unused.json"}


class TestCoolifyClient(unittest.IsolatedAsyncioTestCase):
    """Tests for CoolifyClient."""

    async def asyncSetUp(self):
        self.coolify = FakeCoolify()
        self.client = self.coolify.client()

    async def asyncTearDown(self):
        await self.client.aclose()

    async def test_version_plain_text(self):
        """Test that the version endpoint is read as text, not JSON."""
        self.assertEqual(await self.client.check_version(), "4.0.0-beta.458")

    async def test_version_quoted(self):
        """Test that a JSON-quoted version string is unwrapped."""
        self.coolify.version_body = '"4.0.0"\n'

        self.assertEqual(await self.client.check_version(), "4.0.0")

    async def test_version_html(self):
        """Test that an HTML page on the version endpoint is reported as such."""
        self.coolify.version_body = "<!DOCTYPE html><html><body>Coolify</body></html>"

        with self.assertRaises(UnexpectedResponseFormat) as context:
            await self.client.check_version()

        self.assertIn("HTML", context.exception.message)
        self.assertIn("<!DOCTYPE", context.exception.excerpt)

    async def test_version_rejected_token(self):
        """Test that a 401 is reported as unreachable with a token hint."""
        self.coolify.fail["version"] = 401

        with self.assertRaises(OrchestratorUnreachable) as context:
            await self.client.check_version()

        self.assertIn("token", context.exception.message)

    async def test_version_transport_error(self):
        """Test that a connection error is reported as unreachable."""

        def handler(request):
            raise httpx.ConnectError("Connection refused")

        client = CoolifyClient(
            httpx.AsyncClient(base_url="http://203.0.113.7:8000/api/v1", transport=httpx.MockTransport(handler)),
            retries=0,
        )
        try:
            with self.assertRaises(OrchestratorUnreachable) as context:
                await client.check_version()
        finally:
            await client.aclose()

        self.assertIn("ConnectError", context.exception.message)

    async def test_list_compute_nodes(self):
        """Test that registered servers are returned."""
        nodes = await self.client.list_compute_nodes()

        self.assertEqual([node.uuid for node in nodes], ["srv-uuid-1"])
        self.assertEqual(nodes[0].name, "localhost")

    async def test_list_compute_nodes_empty(self):
        """Test that an empty server list is its own error."""
        self.coolify.servers = []

        with self.assertRaises(NoComputeNodesAvailable):
            await self.client.list_compute_nodes()

    async def test_list_compute_nodes_not_a_list(self):
        """Test that an object where an array is expected is rejected."""
        self.coolify.servers = {"message": "Unauthenticated."}

        with self.assertRaises(UnexpectedResponseFormat):
            await self.client.list_compute_nodes()

    async def test_find_existing_project(self):
        """Test that a project with the same name is reused."""
        self.coolify.projects = [{"uuid": "proj-existing", "name": "my-app"}]

        project = await self.client.find_or_create_project("my-app")

        self.assertEqual(project.uuid, "proj-existing")
        self.assertNotIn(("POST", "/projects"), self.coolify.requests)

    async def test_create_project(self):
        """Test that a missing project is created."""
        project = await self.client.find_or_create_project("my-app")

        self.assertEqual(project.uuid, "proj-uuid-1")
        self.assertEqual(project.name, "my-app")
        self.assertIn(("POST", "/projects"), self.coolify.requests)

    async def test_create_project_rejected(self):
        """Test that a rejected project creation is a provisioning failure."""
        self.coolify.fail["project"] = 422

        with self.assertRaises(ProvisioningFailed) as context:
            await self.client.find_or_create_project("my-app")

        self.assertIn("422", context.exception.message)

    async def test_add_env_var(self):
        """Test the env var payload."""
        await self.client.add_env_var("app-uuid-1", "VITE_API_URL", "https://api.example.com", True)

        self.assertEqual(
            self.coolify.envs,
            [{"key": "VITE_API_URL", "value": "https://api.example.com", "is_build_time": True, "is_preview": False}],
        )

    async def test_trigger_deploy(self):
        """Test that the deploy trigger passes force and no_cache and returns the deployment id."""
        deployment_uuid = await self.client.trigger_deploy("app-uuid-1", force=True, no_cache=True)

        self.assertEqual(deployment_uuid, "dep-uuid-1")
        self.assertEqual(self.coolify.deploy_params, {"uuid": "app-uuid-1", "force": "true", "no_cache": "true"})

    async def test_trigger_deploy_without_cache_flag(self):
        """Test that no_cache is only sent when requested."""
        await self.client.trigger_deploy("app-uuid-1", force=False)

        self.assertEqual(self.coolify.deploy_params, {"uuid": "app-uuid-1", "force": "false"})

    async def test_trigger_deploy_failure(self):
        """Test that a failing deploy trigger is a provisioning failure and is attempted once."""
        self.coolify.fail["deploy"] = 500

        with self.assertRaises(ProvisioningFailed):
            await self.client.trigger_deploy("app-uuid-1")

        self.assertEqual(self.coolify.paths().count("/deploy"), 1)


class TestOpenCoolifyClient(unittest.TestCase):
    """Tests for open_coolify_client."""

    def test_unconfigured_record(self):
        """Test that a record without URL or token cannot be opened."""
        record = CoolifyServerRecord(server_id="srv-1", coolify_url="203.0.113.7")

        with self.assertRaises(OrchestratorUnreachable) as context:
            open_coolify_client(record, CONFIG)

        self.assertIn("srv-1", context.exception.message)

    def test_configured_record(self):
        """Test that the client points at the normalized API base."""
        record = CoolifyServerRecord(server_id="srv-1", coolify_url="203.0.113.7", coolify_token="secret")

        client = open_coolify_client(record, CONFIG)

        self.assertEqual(str(client.client.base_url), "http://203.0.113.7:8000/api/v1/")
        self.assertEqual(client.client.headers["Authorization"], "Bearer secret")
        self.assertEqual(client.retries, 0)


class TestConnectionDiagnostic(unittest.IsolatedAsyncioTestCase):
    """Tests for the connection diagnostic."""

    def setUp(self):
        self.coolify = FakeCoolify()
        self.record = CoolifyServerRecord(
            server_id="srv-1", coolify_url="http://203.0.113.7:8000", coolify_token="secret"
        )

    async def _diagnose(self, record=None):
        record = record or self.record
        with patch(f"{PROBER}.get_config", return_value=CONFIG), patch(f"{PROBER}.load_server", return_value=record):
            return await orchestrator_prober.test_connection("srv-1", client=self.coolify.client())

    async def test_connected(self):
        """Test a healthy connection report."""
        report = await self._diagnose()

        self.assertTrue(report["connected"])
        self.assertEqual(report["version"], "4.0.0-beta.458")
        self.assertEqual(report["normalized_url"], "http://203.0.113.7:8000")
        self.assertEqual([node["uuid"] for node in report["compute_nodes"]], ["srv-uuid-1"])
        self.assertEqual(report["findings"], [])

    async def test_no_servers(self):
        """Test that a connected instance without servers is reported."""
        self.coolify.servers = []

        report = await self._diagnose()

        self.assertTrue(report["connected"])
        self.assertEqual(report["compute_nodes"], [])
        self.assertTrue(report["findings"][0].startswith("[NoComputeNodesAvailable]"))

    async def test_unreachable(self):
        """Test that a rejected token is reported as a finding."""
        self.coolify.fail["version"] = 401

        report = await self._diagnose()

        self.assertFalse(report["connected"])
        self.assertIsNone(report["version"])
        self.assertTrue(report["findings"][-1].startswith("[OrchestratorUnreachable]"))

    async def test_url_warning(self):
        """Test that a non-standard port is surfaced as a finding."""
        record = CoolifyServerRecord(server_id="srv-1", coolify_url="http://203.0.113.7:3000", coolify_token="secret")

        report = await self._diagnose(record)

        self.assertTrue(report["url_validation"]["is_valid"])
        self.assertEqual(report["url_validation"]["suggested_url"], "http://203.0.113.7:8000")
        self.assertIn("Non-standard port", report["findings"][0])

    async def test_unknown_server(self):
        """Test that an unknown server id propagates."""
        missing = ServerNotFound("Server 'nope' not found")
        with patch(f"{PROBER}.get_config", return_value=CONFIG), patch(f"{PROBER}.load_server", side_effect=missing):
            with self.assertRaises(ServerNotFound):
                await orchestrator_prober.test_connection("nope")


if __name__ == "__main__":
    unittest.main()
