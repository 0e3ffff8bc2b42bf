"""
API Module - Black Box Interface

Purpose: Shared data models passed between modules
Interface: Pydantic models and enums
Hidden: Validation and ARM payload parsing

Every other module speaks in these types only.
"""

from .models import (
    DEFAULT_NAMESPACE,
    ClusterHandle,
    CommandRequest,
    CommandResult,
    DeployPhase,
    OperationHandle,
    OperationState,
    ResourceObject,
    StabilityStrategy,
)

__all__ = [
    "DEFAULT_NAMESPACE",
    "ClusterHandle",
    "CommandRequest",
    "CommandResult",
    "DeployPhase",
    "OperationHandle",
    "OperationState",
    "ResourceObject",
    "StabilityStrategy",
]
