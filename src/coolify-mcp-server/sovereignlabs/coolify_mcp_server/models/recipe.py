"""
Models for build recipe analysis and repair.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class RecipeAnalysis(BaseModel):
    """Result of the install/copy ordering check on a Dockerfile."""

    is_valid: bool = Field(description="Whether the manifest copy precedes the install step")

    copy_package_line: Optional[int] = Field(
        default=None, description="1-based line of the first COPY of package.json"
    )

    install_command_line: Optional[int] = Field(
        default=None, description="1-based line of the first RUN npm install / npm ci"
    )

    detail: str = Field(description="Human-readable explanation with line numbers")


class WriteSetEntry(BaseModel):
    """One file added or replaced by a repair commit."""

    path: str
    content: str


class RepairOutcome(BaseModel):
    """Outcome of a commit-then-verify repair."""

    commit_sha: str = Field(description="SHA of the commit the branch now points to")

    files_written: List[str] = Field(default_factory=list)

    verified: bool = Field(
        default=False, description="Whether the re-fetched recipe passed analysis"
    )

    analysis: Optional[RecipeAnalysis] = Field(
        default=None, description="Analysis of the re-fetched recipe"
    )

    raw_content: Optional[str] = Field(
        default=None, description="Re-fetched recipe content, None if the re-read failed"
    )
