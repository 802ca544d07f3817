"""
Models for the Coolify management API and stored server credentials.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CoolifyServerRecord(BaseModel):
    """Stored credentials for one user server running Coolify."""

    server_id: str
    name: Optional[str] = None
    coolify_url: Optional[str] = None
    coolify_token: Optional[str] = Field(default=None, repr=False)

    @property
    def configured(self) -> bool:
        return bool(self.coolify_url and self.coolify_token)


class CoolifyUrlValidation(BaseModel):
    """Validation verdict for a user-supplied Coolify URL."""

    is_valid: bool
    normalized_url: str
    warning: Optional[str] = None
    error: Optional[str] = None
    suggested_url: Optional[str] = None


class CoolifyServer(BaseModel):
    """A compute node registered in Coolify."""

    model_config = ConfigDict(extra="ignore")

    uuid: str
    name: Optional[str] = None
    ip: Optional[str] = None


class CoolifyProject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: str
    name: Optional[str] = None


class CoolifyApplication(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: str
    name: Optional[str] = None
    build_pack: Optional[str] = None
    base_directory: Optional[str] = None
    dockerfile_location: Optional[str] = None
    git_repository: Optional[str] = None
    git_branch: Optional[str] = None
    ports_exposes: Optional[str] = None
    fqdn: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        """Configuration fields safe to return to callers (no repository URL)."""
        return {
            "build_pack": self.build_pack,
            "base_directory": self.base_directory,
            "dockerfile_location": self.dockerfile_location,
            "git_branch": self.git_branch,
            "ports_exposes": self.ports_exposes,
        }


class CoolifyDeployment(BaseModel):
    """Response of the deploy trigger; the identifier moved between Coolify versions."""

    model_config = ConfigDict(extra="ignore")

    deployment_uuid: Optional[str] = None
    uuid: Optional[str] = None
    deployments: List[Dict[str, Any]] = Field(default_factory=list)

    def resolved_uuid(self) -> Optional[str]:
        if self.deployment_uuid:
            return self.deployment_uuid
        if self.uuid:
            return self.uuid
        for deployment in self.deployments:
            if deployment.get("deployment_uuid"):
                return deployment["deployment_uuid"]
        return None
