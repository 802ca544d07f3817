"""
Models for pre-deploy check, provisioning and auto-fix results.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

DockerfileStatus = Literal[
    "exists_valid",
    "exists_fixed",
    "generated",
    "missing",
    "invalid",
    "github_fetch_failed",
]

StepOutcome = Literal["success", "degraded", "error", "pending", "skipped"]


class StepResult(BaseModel):
    """Outcome of one pipeline step, including best-effort steps that degraded."""

    name: str
    outcome: StepOutcome
    detail: str = ""


class PreDeployChecks(BaseModel):
    """Per-check pass/fail map of the pre-deploy run."""

    coolify_connection: bool = False
    coolify_servers: bool = False
    github_access: bool = False
    github_write_permission: bool = False
    package_json: bool = False
    dockerfile: bool = False
    dockerfile_verified: bool = False
    env_vars: bool = False


class DockerfileProof(BaseModel):
    """Line-number evidence behind a Dockerfile validity judgment."""

    raw_content: Optional[str] = Field(default=None, description="First 500 characters")
    copy_package_line: Optional[int] = None
    npm_install_line: Optional[int] = None
    is_valid: bool = False


class GithubInfo(BaseModel):
    owner: str
    repo: str
    has_write_permission: bool = False
    permission_level: Optional[str] = None
    dockerfile_fetched: bool = False


class EnvVarNeeded(BaseModel):
    key: str
    suggested_value: Optional[str] = None
    is_build_time: bool = False


class PreDeployRequest(BaseModel):
    """Caller-supplied parameters of a pre-deploy run."""

    server_id: str
    github_repo_url: str
    project_name: str
    domain: Optional[str] = None
    env_vars: Dict[str, str] = Field(default_factory=dict)
    auto_deploy: bool = False
    auto_fix: bool = True
    skip_dockerfile_fix: bool = False


class ProvisionRequest(BaseModel):
    """Parameters for creating and configuring a Coolify application."""

    project_name: str
    github_repo_url: str
    git_branch: Optional[str] = None
    git_commit_sha: Optional[str] = None
    compute_node_uuid: Optional[str] = Field(
        default=None, description="Coolify server to bind to; first available if omitted"
    )
    domain: Optional[str] = None
    env_vars: Dict[str, str] = Field(default_factory=dict)
    auto_deploy: bool = True
    force_rebuild: bool = True
    force_no_cache: bool = True


class ProvisionResult(BaseModel):
    success: bool = False
    app_uuid: Optional[str] = None
    project_uuid: Optional[str] = None
    deployment_uuid: Optional[str] = None
    git_branch: Optional[str] = None
    app_config: Optional[Dict[str, Any]] = None
    steps: List[StepResult] = Field(default_factory=list)
    message: str = ""

    def degraded_steps(self) -> List[StepResult]:
        return [step for step in self.steps if step.outcome in ("degraded", "error")]


class PreDeployResult(BaseModel):
    """Aggregate report returned by the pre-deploy coordinator."""

    ready: bool = False
    actions_taken: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    blocking_errors: List[str] = Field(default_factory=list)
    checks: PreDeployChecks = Field(default_factory=PreDeployChecks)
    dockerfile_status: DockerfileStatus = "missing"
    dockerfile_proof: Optional[DockerfileProof] = None
    github_info: Optional[GithubInfo] = None
    commit_sha: str = ""
    branch: str = "main"
    env_vars_needed: List[EnvVarNeeded] = Field(default_factory=list)
    steps: List[StepResult] = Field(default_factory=list)
    provisioning: Optional[ProvisionResult] = None


class RedeployResult(BaseModel):
    success: bool = False
    deployment_uuid: Optional[str] = None
    branch: str
    commit_sha: str
    patch_verified: bool = Field(
        default=False,
        description="True only when the full build-config patch was accepted",
    )
    message: str = ""


class AutoFixResult(BaseModel):
    success: bool = False
    message: str = ""
    commit_sha: Optional[str] = None
    branch: Optional[str] = None
    verified_commit: bool = False
    files_modified: List[str] = Field(default_factory=list)
    commit_url: Optional[str] = None
    redeploy: Optional[RedeployResult] = None
    steps: List[StepResult] = Field(default_factory=list)
