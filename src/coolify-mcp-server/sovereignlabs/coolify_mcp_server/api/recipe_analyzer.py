"""
Static analysis of Dockerfiles for the install-before-copy ordering defect.

A Dockerfile that runs ``npm install`` before ``COPY package.json`` builds an
image without dependencies, so the check only looks at the relative position
of those two instructions. It does not attempt general Dockerfile validation.
"""

import logging
from typing import Optional

from sovereignlabs.coolify_mcp_server.models.recipe import RecipeAnalysis

logger = logging.getLogger(__name__)

MANIFEST_MARKERS = ("package.json", "package*.json")
INSTALL_MARKERS = ("npm install", "npm ci")


def _is_manifest_copy(line: str) -> bool:
    if not line.strip().upper().startswith("COPY"):
        return False
    lowered = line.lower()
    return any(marker in lowered for marker in MANIFEST_MARKERS)


def _is_install(line: str) -> bool:
    if not line.strip().upper().startswith("RUN"):
        return False
    lowered = line.lower()
    return any(marker in lowered for marker in INSTALL_MARKERS)


def analyze_recipe(content: str) -> RecipeAnalysis:
    """
    Finds the first manifest COPY and the first npm install and checks their order.

    Args:
        content: Raw Dockerfile text

    Returns:
        RecipeAnalysis with 1-based line numbers of both instructions
    """
    copy_line: Optional[int] = None
    install_line: Optional[int] = None

    # Only \n ends a line; a stray \r or form feed stays inside its line
    for number, line in enumerate(content.split("\n"), start=1):
        if copy_line is None and _is_manifest_copy(line):
            copy_line = number
        if install_line is None and _is_install(line):
            install_line = number

    if copy_line is None:
        detail = "manifest copy step missing: COPY package.json not found in Dockerfile"
        is_valid = False
    elif install_line is None:
        detail = "no install step found (recipe may use a different build strategy)"
        is_valid = True
    elif copy_line < install_line:
        detail = f"valid: COPY package.json (line {copy_line}) before npm install (line {install_line})"
        is_valid = True
    else:
        detail = (
            f"install runs before manifest is copied: npm install (line {install_line}) "
            f"precedes COPY package.json (line {copy_line})"
        )
        is_valid = False

    logger.debug(f"Dockerfile analysis: {detail}")
    return RecipeAnalysis(
        is_valid=is_valid,
        copy_package_line=copy_line,
        install_command_line=install_line,
        detail=detail,
    )
