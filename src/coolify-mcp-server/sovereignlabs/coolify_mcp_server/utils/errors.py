"""
Error taxonomy for the pre-deploy pipeline.

Every error carries a stable ``code`` so findings can be reported as
``[Code] message`` in the pre-deploy result.
"""

from typing import Optional


class PreflightError(Exception):
    """Base class for pipeline errors."""

    code = "PreflightError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def finding(self) -> str:
        """Formats the error as a blocking/warning finding."""
        return f"[{self.code}] {self.message}"


class CredentialsMissing(PreflightError):
    """No platform-level GitHub token is configured."""

    code = "CredentialsMissing"


class InsufficientPermission(PreflightError):
    """The token can read the repository but cannot push to it."""

    code = "InsufficientPermission"

    def __init__(self, permission_level: str):
        super().__init__(
            f"GitHub token lacks push rights on the repository (detected level: {permission_level}). "
            "Use a token with 'Contents: write' or fix the Dockerfile manually."
        )
        self.permission_level = permission_level


class InvalidRepositoryUrl(PreflightError):
    """The repository URL is not a GitHub URL."""

    code = "InvalidRepositoryUrl"


class RepositoryUnreachable(PreflightError):
    """Reading repository metadata from GitHub failed."""

    code = "RepositoryUnreachable"

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UnexpectedResponseFormat(PreflightError):
    """A remote API answered with a body that is not the expected JSON shape."""

    code = "UnexpectedResponseFormat"

    def __init__(self, message: str, excerpt: str = ""):
        super().__init__(message)
        self.excerpt = excerpt


class OrchestratorUnreachable(PreflightError):
    """The Coolify API could not be reached or rejected the token."""

    code = "OrchestratorUnreachable"


class NoComputeNodesAvailable(PreflightError):
    """Coolify has no registered servers to deploy onto."""

    code = "NoComputeNodesAvailable"


class ProvisioningFailed(PreflightError):
    """Creating the Coolify project or application failed."""

    code = "ProvisioningFailed"


class CommitWriteError(PreflightError):
    """Base class for failures in the blob/tree/commit/ref write chain."""

    code = "CommitWriteError"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BaseTreeResolutionFailed(CommitWriteError):
    code = "BaseTreeResolutionFailed"


class BlobCreationFailed(CommitWriteError):
    code = "BlobCreationFailed"


class TreeCreationFailed(CommitWriteError):
    code = "TreeCreationFailed"


class CommitCreationFailed(CommitWriteError):
    code = "CommitCreationFailed"


class RefUpdateFailed(CommitWriteError):
    code = "RefUpdateFailed"


class ManifestMissing(PreflightError):
    """No package.json at the repository root."""

    code = "ManifestMissing"


class RecipeInvalid(PreflightError):
    """The Dockerfile is missing or broken and may not be repaired in this run."""

    code = "RecipeInvalid"


class VerificationFailed(PreflightError):
    """The write appeared to succeed but re-reading shows the recipe is still broken."""

    code = "VerificationFailed"


class PipelineTimeout(PreflightError):
    """The overall wall-clock budget for the run was exhausted."""

    code = "PipelineTimeout"


class PreDeployRequestError(PreflightError):
    """Entry failures: the only errors allowed to escape the coordinator."""

    code = "PreDeployRequestError"


class MissingParameter(PreDeployRequestError):
    code = "MissingParameter"


class ServerNotFound(PreDeployRequestError):
    code = "ServerNotFound"
