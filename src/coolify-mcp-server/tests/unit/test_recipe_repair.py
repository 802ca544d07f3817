"""
Unit tests for the Dockerfile repair engine.
"""

import json
import unittest

import httpx

from sovereignlabs.coolify_mcp_server.api.recipe_repair import RecipeRepairEngine, build_write_set
from sovereignlabs.coolify_mcp_server.api.source_inspector import SourceInspector
from sovereignlabs.coolify_mcp_server.models.github import RepositoryReference
from sovereignlabs.coolify_mcp_server.models.recipe import WriteSetEntry
from sovereignlabs.coolify_mcp_server.utils.errors import (
    BaseTreeResolutionFailed,
    BlobCreationFailed,
    CommitCreationFailed,
    CredentialsMissing,
    InsufficientPermission,
    RefUpdateFailed,
    TreeCreationFailed,
)
from sovereignlabs.coolify_mcp_server.utils.github import GITHUB_API_URL

from fakes import BROKEN_DOCKERFILE, VALID_DOCKERFILE, FakeGitHub


def _reference(permission_level="write", head_sha="base0000000"):
    return RepositoryReference(
        owner="octo", name="app", default_branch="main", head_sha=head_sha, permission_level=permission_level
    )


class TestRecipeRepairEngine(unittest.IsolatedAsyncioTestCase):
    """Tests for RecipeRepairEngine."""

    async def asyncSetUp(self):
        self.github = FakeGitHub(files={"package.json": "{}", "Dockerfile": BROKEN_DOCKERFILE})
        self.client = self.github.client()
        self.engine = RecipeRepairEngine(SourceInspector("octo", "app", self.client, retries=0), self.client, verify_delay=0)

    async def asyncTearDown(self):
        await self.client.aclose()

    def test_check_permission(self):
        """Test that only write and admin may push."""
        RecipeRepairEngine.check_permission("write")
        RecipeRepairEngine.check_permission("admin")

        for level in ("read", "none"):
            with self.assertRaises(InsufficientPermission) as context:
                RecipeRepairEngine.check_permission(level)
            self.assertIn(level, context.exception.message)

    def test_write_set(self):
        """Test that the Dockerfile and nginx config are written together."""
        self.assertEqual([entry.path for entry in build_write_set()], ["Dockerfile", "nginx.conf"])

    async def test_repair_fix(self):
        """Test the full blob, tree, commit and ref chain followed by verification."""
        outcome = await self.engine.repair(_reference(), token_present=True, mode="fix", current_content=BROKEN_DOCKERFILE)

        self.assertTrue(outcome.verified)
        self.assertTrue(outcome.analysis.is_valid)
        self.assertEqual(outcome.files_written, ["Dockerfile", "nginx.conf"])
        self.assertEqual(self.github.head, outcome.commit_sha)

        # Verify the order of write calls
        self.assertEqual(
            [path.rsplit("/", 1)[-1] for _, path in self.github.writes()],
            ["blobs", "blobs", "trees", "commits", "main"],
        )

    async def test_commit_payloads(self):
        """Test that the commit is layered on the base tree with the base commit as parent."""
        bodies = []
        original = self.github.handler

        def handler(request):
            if request.method != "GET":
                bodies.append((request.url.path, json.loads(request.content)))
            return original(request)

        client = httpx.AsyncClient(base_url=GITHUB_API_URL, transport=httpx.MockTransport(handler))
        engine = RecipeRepairEngine(SourceInspector("octo", "app", client, retries=0), client, verify_delay=0)
        try:
            await engine.commit_write_set(
                [WriteSetEntry(path="Dockerfile", content="FROM x\n")], "base0000000", "main", "msg", force=False
            )
        finally:
            await client.aclose()

        payloads = dict(bodies)
        self.assertEqual(payloads["/repos/octo/app/git/blobs"], {"content": "FROM x\n", "encoding": "utf-8"})
        tree = payloads["/repos/octo/app/git/trees"]
        self.assertEqual(tree["base_tree"], "tree-of-base0000000")
        self.assertEqual(tree["tree"][0]["mode"], "100644")
        self.assertEqual(payloads["/repos/octo/app/git/commits"]["parents"], ["base0000000"])
        self.assertFalse(payloads["/repos/octo/app/git/refs/heads/main"]["force"])

    async def test_already_valid_is_noop(self):
        """Test that a valid Dockerfile produces no commit."""
        outcome = await self.engine.repair(_reference(), token_present=True, current_content=VALID_DOCKERFILE)

        self.assertTrue(outcome.verified)
        self.assertEqual(outcome.files_written, [])
        self.assertEqual(outcome.commit_sha, "base0000000")
        self.assertEqual(self.github.writes(), [])

    async def test_missing_token(self):
        """Test that no write happens without a platform token."""
        with self.assertRaises(CredentialsMissing):
            await self.engine.repair(_reference(), token_present=False, current_content=BROKEN_DOCKERFILE)

        self.assertEqual(self.github.writes(), [])

    async def test_read_permission_never_writes(self):
        """Test that a read-only token never reaches the blob step."""
        for level in ("read", "none"):
            with self.assertRaises(InsufficientPermission):
                await self.engine.repair(_reference(level), token_present=True, current_content=BROKEN_DOCKERFILE)

        self.assertEqual(self.github.writes(), [])

    async def test_unknown_base(self):
        """Test that an unknown branch head aborts before writing."""
        with self.assertRaises(BaseTreeResolutionFailed):
            await self.engine.repair(_reference(head_sha=None), token_present=True, mode="generate")

        self.assertEqual(self.github.writes(), [])

    async def test_step_failures(self):
        """Test that each failing step raises its own error and stops the chain."""
        cases = [
            ("blobs", BlobCreationFailed, 1),
            ("trees", TreeCreationFailed, 3),
            ("commits", CommitCreationFailed, 4),
            ("update_ref", RefUpdateFailed, 5),
        ]
        for step, error_class, write_count in cases:
            with self.subTest(step=step):
                self.github.requests = []
                self.github.fail = {step: 422}

                with self.assertRaises(error_class) as context:
                    await self.engine.repair(_reference(), token_present=True, current_content=BROKEN_DOCKERFILE)

                self.assertEqual(context.exception.status_code, 422)
                self.assertEqual(len(self.github.writes()), write_count)
                self.assertEqual(self.github.head, "base0000000")

    async def test_writes_not_retried(self):
        """Test that a 5xx on a write is not retried."""
        self.github.fail["blobs"] = 502
        engine = RecipeRepairEngine(SourceInspector("octo", "app", self.client, retries=2), self.client, verify_delay=0)

        with self.assertRaises(BlobCreationFailed):
            await engine.repair(_reference(), token_present=True, current_content=BROKEN_DOCKERFILE)

        self.assertEqual(len(self.github.writes()), 1)

    async def test_ref_points_elsewhere(self):
        """Test that a ref that does not move to the new commit is a failure."""
        self.github.ref_after_update = "someone-else"

        with self.assertRaises(RefUpdateFailed) as context:
            await self.engine.repair(_reference(), token_present=True, current_content=BROKEN_DOCKERFILE)

        self.assertIn("someone", context.exception.message)

    async def test_verification_reports_broken_content(self):
        """Test that content still broken after the commit is not reported verified."""
        self.github.content_after_update = BROKEN_DOCKERFILE

        outcome = await self.engine.repair(_reference(), token_present=True, current_content=BROKEN_DOCKERFILE)

        self.assertFalse(outcome.verified)
        self.assertFalse(outcome.analysis.is_valid)
        self.assertEqual(outcome.raw_content, BROKEN_DOCKERFILE)

    async def test_verification_unreadable(self):
        """Test that an unreadable Dockerfile after the commit is not reported verified."""
        self.github.unreadable.add("Dockerfile")

        outcome = await self.engine.repair(_reference(), token_present=True, mode="generate")

        self.assertFalse(outcome.verified)
        self.assertIsNone(outcome.analysis)


if __name__ == "__main__":
    unittest.main()
