"""
Errors Module - Black Box Interface

Purpose: One exception hierarchy for every failure a deploy can hit
Interface: ConvergenceError and its subclasses
Hidden: Message formatting

Errors are chained with `raise ... from ...` so the causal path from a
failed call down to the remote exit code is preserved.
"""

from .errors import (
    ClusterConnectionError,
    CommandFailure,
    ConvergenceCancelledError,
    ConvergenceError,
    CredentialError,
    DeadlineExceededError,
    DeploymentError,
    DispatchError,
    OutputWriteError,
    SerializationError,
    StabilityError,
    TransportFailure,
)

__all__ = [
    "ClusterConnectionError",
    "CommandFailure",
    "ConvergenceCancelledError",
    "ConvergenceError",
    "CredentialError",
    "DeadlineExceededError",
    "DeploymentError",
    "DispatchError",
    "OutputWriteError",
    "SerializationError",
    "StabilityError",
    "TransportFailure",
]
