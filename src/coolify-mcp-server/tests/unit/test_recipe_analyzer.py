"""
Unit tests for the Dockerfile ordering analyzer.
"""

import unittest

from sovereignlabs.coolify_mcp_server.api.recipe_analyzer import analyze_recipe
from sovereignlabs.coolify_mcp_server.utils.templates import render_template

from fakes import BROKEN_DOCKERFILE


def _recipe(lines):
    """Builds a Dockerfile with the given instructions at 1-based line numbers."""
    size = max(lines)
    body = ["# filler"] * size
    for number, line in lines.items():
        body[number - 1] = line
    return "\n".join(body) + "\n"


class TestRecipeAnalyzer(unittest.TestCase):
    """Tests for analyze_recipe."""

    def test_install_before_copy_is_invalid(self):
        """Test the install-before-copy defect with line evidence."""
        analysis = analyze_recipe(BROKEN_DOCKERFILE)

        self.assertFalse(analysis.is_valid)
        self.assertEqual(analysis.copy_package_line, 9)
        self.assertEqual(analysis.install_command_line, 5)
        self.assertIn("npm install (line 5) precedes COPY package.json (line 9)", analysis.detail)

    def test_copy_before_npm_ci_is_valid(self):
        """Test a Dockerfile that copies the manifest before npm ci."""
        content = _recipe({1: "FROM node:20-alpine", 4: "COPY package.json ./", 8: "RUN npm ci"})

        analysis = analyze_recipe(content)

        self.assertTrue(analysis.is_valid)
        self.assertEqual(analysis.copy_package_line, 4)
        self.assertEqual(analysis.install_command_line, 8)
        self.assertEqual(analysis.detail, "valid: COPY package.json (line 4) before npm install (line 8)")

    def test_glob_manifest_copy_is_recognized(self):
        """Test that COPY package*.json counts as the manifest copy."""
        content = "FROM node:20\nCOPY package*.json ./\nRUN npm install\n"

        analysis = analyze_recipe(content)

        self.assertTrue(analysis.is_valid)
        self.assertEqual(analysis.copy_package_line, 2)

    def test_missing_copy_is_invalid_regardless_of_install(self):
        """Test that no manifest copy is always invalid."""
        with_install = analyze_recipe("FROM node:20\nCOPY . .\nRUN npm install\n")
        without_install = analyze_recipe("FROM node:20\nCOPY . .\n")

        for analysis in (with_install, without_install):
            self.assertFalse(analysis.is_valid)
            self.assertIsNone(analysis.copy_package_line)
            self.assertIn("manifest copy step missing", analysis.detail)

    def test_copy_without_install_is_valid(self):
        """Test a recipe that copies the manifest but installs some other way."""
        analysis = analyze_recipe("FROM node:20\nCOPY package.json ./\nRUN yarn install\n")

        self.assertTrue(analysis.is_valid)
        self.assertIsNone(analysis.install_command_line)
        self.assertIn("no install step found", analysis.detail)

    def test_only_first_occurrences_count(self):
        """Test that later instructions do not change the verdict."""
        content = "RUN npm install\nCOPY package.json ./\nRUN npm ci\nCOPY package.json ./\n"

        analysis = analyze_recipe(content)

        self.assertFalse(analysis.is_valid)
        self.assertEqual(analysis.install_command_line, 1)
        self.assertEqual(analysis.copy_package_line, 2)

    def test_case_and_indentation(self):
        """Test that instructions are matched case-insensitively after trimming."""
        content = "from node:20\n  copy PACKAGE.JSON ./\n\trun NPM CI\n"

        analysis = analyze_recipe(content)

        self.assertTrue(analysis.is_valid)
        self.assertEqual(analysis.copy_package_line, 2)
        self.assertEqual(analysis.install_command_line, 3)

    def test_comments_and_other_instructions_ignored(self):
        """Test that comments and non-RUN lines mentioning npm install are not install steps."""
        content = (
            "# RUN npm install would break this\n"
            "LABEL note=\"npm install\"\n"
            "COPY package.json ./\n"
            "RUN npm install\n"
        )

        analysis = analyze_recipe(content)

        self.assertTrue(analysis.is_valid)
        self.assertEqual(analysis.install_command_line, 4)

    def test_ordering_property(self):
        """Test the verdict for every relative position of copy and install."""
        for copy_line in range(1, 7):
            for install_line in range(1, 7):
                if copy_line == install_line:
                    continue
                content = _recipe({copy_line: "COPY package.json ./", install_line: "RUN npm install"})
                analysis = analyze_recipe(content)
                self.assertEqual(
                    analysis.is_valid,
                    copy_line < install_line,
                    f"copy={copy_line} install={install_line}",
                )

    def test_run_mentioning_manifest_is_not_a_copy(self):
        """Test that a RUN line touching package.json does not count as the manifest copy."""
        analysis = analyze_recipe("RUN npm install && cp package.json /tmp\n")

        self.assertFalse(analysis.is_valid)
        self.assertIsNone(analysis.copy_package_line)
        self.assertEqual(analysis.install_command_line, 1)

    def test_line_numbers_count_newlines_only(self):
        """Test that carriage returns and form feeds inside a line do not shift line numbers."""
        content = "FROM node:20\r\nWORKDIR /app\x0c\nCOPY package.json ./\rRUN echo\nRUN npm install\n"

        analysis = analyze_recipe(content)

        self.assertTrue(analysis.is_valid)
        self.assertEqual(analysis.copy_package_line, 3)
        self.assertEqual(analysis.install_command_line, 4)

    def test_bundled_template_is_valid(self):
        """Test that the Dockerfile written by repairs passes analysis."""
        analysis = analyze_recipe(render_template("Dockerfile.vite"))

        self.assertTrue(analysis.is_valid)
        self.assertLess(analysis.copy_package_line, analysis.install_command_line)


if __name__ == "__main__":
    unittest.main()
