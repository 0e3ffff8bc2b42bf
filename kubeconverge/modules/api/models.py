"""
kubeconverge shared data models.

These models define the structure of all data passed between
components in the kubeconverge system.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

DEFAULT_NAMESPACE = "default"

RESOURCE_ID_PATTERN = re.compile(
    r"^/subscriptions/(?P<subscription>[^/]+)"
    r"/resourceGroups/(?P<resource_group>[^/]+)"
    r"/providers/Microsoft\.ContainerService/managedClusters/(?P<name>[^/]+)$",
    re.IGNORECASE,
)

# Enums


class OperationState(str, Enum):
    """State of a long-running remote operation."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @classmethod
    def from_provisioning_state(cls, value: Optional[str]) -> "OperationState":
        """Map an ARM provisioningState onto the operation state machine."""
        normalized = str(value or "").lower()
        if normalized == "succeeded":
            return cls.SUCCEEDED
        if normalized in ("failed", "canceled", "cancelled"):
            return cls.FAILED
        return cls.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self is not OperationState.RUNNING


class StabilityStrategy(str, Enum):
    """How a resource kind is verified after apply."""

    ROLLOUT_STATUS = "rollout-status"
    READINESS_WAIT = "readiness-wait"
    JOB_COMPLETION = "job-completion"
    NO_CHECK = "no-check"


class DeployPhase(str, Enum):
    """Phases of a deploy or clean call."""

    PACKAGING = "packaging"
    SUBMITTING = "submitting"
    AWAITING_COMPLETION = "awaiting-completion"
    CHECKING_STABILITY = "checking-stability"
    DONE = "done"
    FAILED = "failed"


# Cluster and resource models


class ClusterHandle(BaseModel):
    """Identifies the managed cluster commands are run against."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Full ARM resource id", min_length=1)
    name: str = Field(..., min_length=1)
    subscription_id: str = Field(..., min_length=1)
    resource_group: str = Field(..., min_length=1)

    @classmethod
    def from_resource_id(cls, resource_id: str) -> "ClusterHandle":
        """
        Load a handle from an ARM resource id.

        Args:
            resource_id: /subscriptions/<sub>/resourceGroups/<rg>/providers/
                Microsoft.ContainerService/managedClusters/<name>

        Raises:
            ValueError: If the id does not name a managed cluster
        """
        resource_id = resource_id.strip().rstrip("/")
        match = RESOURCE_ID_PATTERN.match(resource_id)
        if not match:
            raise ValueError(f"Not a managed cluster resource id: {resource_id!r}")

        return cls(
            id=resource_id,
            name=match.group("name"),
            subscription_id=match.group("subscription"),
            resource_group=match.group("resource_group"),
        )


class ResourceObject(BaseModel):
    """A Kubernetes resource to deploy, read-only to the engine."""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    namespace: str = Field(default="", description="Empty means the default namespace")
    body: Any = Field(default_factory=dict, description="JSON-serializable manifest")

    @property
    def resolved_namespace(self) -> str:
        return self.namespace or DEFAULT_NAMESPACE

    def describe(self) -> str:
        return f"{self.kind}/{self.name} in namespace {self.resolved_namespace}"

    @classmethod
    def from_manifest(cls, manifest: Dict[str, Any]) -> "ResourceObject":
        """
        Build a resource object from a Kubernetes manifest dict.

        Raises:
            ValueError: If kind or metadata.name is missing, or metadata is not a mapping
        """
        if not isinstance(manifest, dict):
            raise ValueError(f"Manifest must be a mapping, got {type(manifest).__name__}")

        metadata = manifest.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise ValueError(f"Manifest metadata must be a mapping, got {type(metadata).__name__}")
        kind = manifest.get("kind")
        name = metadata.get("name")
        if not kind or not name:
            raise ValueError("Manifest requires kind and metadata.name")

        return cls(
            kind=kind,
            name=name,
            namespace=metadata.get("namespace") or "",
            body=manifest,
        )


# Command models


class CommandRequest(BaseModel):
    """A command to run on the cluster through the control plane."""

    model_config = ConfigDict(frozen=True)

    command: str = Field(..., min_length=1)
    context: Optional[str] = Field(None, description="Base64-encoded zip payload")
    output_file: Optional[str] = Field(
        None, description="File name the captured output is written to"
    )


class CommandResult(BaseModel):
    """Terminal outcome of a run command operation."""

    state: OperationState
    exit_code: Optional[int] = None
    logs: str = ""
    reason: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.state is OperationState.SUCCEEDED and self.exit_code == 0

    @classmethod
    def from_arm(cls, payload: Dict[str, Any]) -> "CommandResult":
        """
        Parse a RunCommandResult body.

        Raises:
            ValueError: If the body or its properties are not mappings
        """
        if not isinstance(payload, dict):
            raise ValueError(f"RunCommandResult must be a mapping, got {type(payload).__name__}")
        properties = payload.get("properties") or {}
        if not isinstance(properties, dict):
            raise ValueError("RunCommandResult properties must be a mapping")
        return cls(
            state=OperationState.from_provisioning_state(properties.get("provisioningState")),
            exit_code=properties.get("exitCode"),
            logs=properties.get("logs") or "",
            reason=properties.get("reason"),
            started_at=properties.get("startedAt"),
            finished_at=properties.get("finishedAt"),
        )


class OperationHandle(BaseModel):
    """
    Token for a submitted run command.

    A handle is polled to a terminal state exactly once.
    """

    operation_id: str
    location: Optional[str] = None
    retry_after: Optional[float] = None
    result: Optional[CommandResult] = Field(
        None, description="Set when the remote answered synchronously"
    )

    _polled: bool = PrivateAttr(default=False)

    @property
    def polled(self) -> bool:
        return self._polled

    def mark_polled(self) -> None:
        """
        Claim the handle for polling.

        Raises:
            RuntimeError: If the handle was already polled
        """
        if self._polled:
            raise RuntimeError(f"Operation {self.operation_id} was already polled")
        self._polled = True
