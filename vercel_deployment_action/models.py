from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vercel_deployment_action.errors import ConfigError


class DeploymentStatus(str, Enum):
    QUEUED = "QUEUED"
    INITIALIZING = "INITIALIZING"
    BUILDING = "BUILDING"
    READY = "READY"
    ERROR = "ERROR"
    CANCELED = "CANCELED"

    @property
    def is_terminal_failure(self) -> bool:
        return self in (DeploymentStatus.ERROR, DeploymentStatus.CANCELED)

    @property
    def is_in_progress(self) -> bool:
        return self in (
            DeploymentStatus.QUEUED,
            DeploymentStatus.INITIALIZING,
            DeploymentStatus.BUILDING,
        )


class Credential(BaseModel):
    """A bearer token and the moment it stops being valid (epoch milliseconds)."""

    model_config = ConfigDict(frozen=True)

    token: str
    expires_at: int


class StatusQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    sha: str
    job_name: str
    project_name: Optional[str] = None
    project_id: Optional[str] = None

    @model_validator(mode="after")
    def _require_project(self) -> "StatusQuery":
        if not self.project_name and not self.project_id:
            raise ConfigError("either a Vercel project name or project id is required")
        return self

    def to_payload(self) -> dict:
        return {
            "sha": self.sha,
            "jobName": self.job_name,
            "vercelProjectName": self.project_name or None,
            "vercelProjectId": self.project_id or None,
        }


class StatusResponse(BaseModel):
    """Deployment state as reported by the status service.

    ``status`` stays a plain string so values outside ``DeploymentStatus``
    can still be parsed and reported.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    deployment_id: str = Field(alias="deploymentId")
    status: str
    deployment_url: Optional[str] = Field(default=None, alias="deploymentURL")

    @property
    def known_status(self) -> Optional[DeploymentStatus]:
        try:
            return DeploymentStatus(self.status)
        except ValueError:
            return None


class Success(BaseModel):
    kind: Literal["success"] = "success"
    response: StatusResponse


class Continue(BaseModel):
    kind: Literal["continue"] = "continue"
    reason: str


class Fatal(BaseModel):
    kind: Literal["fatal"] = "fatal"
    error: str


Decision = Union[Success, Continue, Fatal]


class WaitState(str, Enum):
    polling = "polling"
    refreshing = "refreshing"
    succeeded = "succeeded"
    failed = "failed"
    timed_out = "timed_out"


class WaitConfig(BaseModel):
    timeout: float = Field(default=600.0, gt=0)  # 10 minutes
    poll_interval: float = Field(default=5.0, gt=0)
    request_timeout: float = Field(default=30.0, gt=0)
