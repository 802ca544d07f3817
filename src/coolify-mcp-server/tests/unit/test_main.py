"""
Unit tests for main server module.
"""

import unittest
from unittest.mock import patch


# We need to patch the imports before importing the module under test
class MockFastMCP:
    def __init__(self, name, instructions=None, **kwargs):
        self.name = name
        self.instructions = instructions or ""
        self.tools = []
        self.prompt_patterns = []

    def tool(self, name=None):
        def decorator(func):
            self.tools.append({"name": name or func.__name__, "function": func})
            return func
        return decorator

    def prompt(self, pattern):
        def decorator(func):
            self.prompt_patterns.append({"pattern": pattern, "function": func})
            return func
        return decorator

    def run(self):
        pass


# Apply the patches
with patch("mcp.server.fastmcp.FastMCP", MockFastMCP):
    from sovereignlabs.coolify_mcp_server import main as server


class TestMain(unittest.TestCase):
    """Tests for main server module."""

    def test_server_configuration(self):
        """Test server configuration."""
        mcp = server.mcp
        self.assertEqual(mcp.name, "Coolify Pre-Deploy MCP Server")

        # Verify the instructions describe the workflow
        self.assertIn("pre_deploy_check", mcp.instructions)
        self.assertIn("ALLOW_WRITE", mcp.instructions)

        # Verify tool names
        tool_names = [tool["name"] for tool in mcp.tools]
        self.assertEqual(
            sorted(tool_names),
            sorted(
                [
                    "pre_deploy_check",
                    "auto_fix_dockerfile",
                    "configure_coolify_app",
                    "test_coolify_connection",
                    "analyze_dockerfile",
                ]
            ),
        )

        # Verify prompt patterns
        patterns = [pattern["pattern"] for pattern in mcp.prompt_patterns]
        self.assertIn("pre deploy", patterns)
        self.assertIn("deploy to coolify", patterns)
        self.assertIn("fix dockerfile", patterns)
        self.assertIn("test coolify", patterns)

    def test_prompts_name_registered_tools(self):
        """Test that every prompt suggests tools that exist."""
        tool_names = {tool["name"] for tool in server.mcp.tools}
        for pattern in server.mcp.prompt_patterns:
            with self.subTest(pattern=pattern["pattern"]):
                self.assertTrue(set(pattern["function"]()) <= tool_names)

    def test_main_runs_server(self):
        """Test that main starts the server."""
        with patch.object(server.mcp, "run") as mock_run:
            server.main()
        mock_run.assert_called_once()

    def test_main_exits_on_error(self):
        """Test that a startup failure exits with status 1."""
        with patch.object(server.mcp, "run", side_effect=RuntimeError("boom")):
            with self.assertRaises(SystemExit) as context:
                server.main()
        self.assertEqual(context.exception.code, 1)

    def test_main_keyboard_interrupt(self):
        """Test that an interrupt exits cleanly."""
        with patch.object(server.mcp, "run", side_effect=KeyboardInterrupt):
            with self.assertRaises(SystemExit) as context:
                server.main()
        self.assertEqual(context.exception.code, 0)


if __name__ == "__main__":
    unittest.main()
