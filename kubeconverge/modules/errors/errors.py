"""Error taxonomy for deploy and clean calls."""

from typing import Optional

from ..api.models import DeployPhase


class ConvergenceError(Exception):
    """Base class for every error raised by kubeconverge."""


class ClusterConnectionError(ConvergenceError):
    """The control plane could not be reached."""


class DispatchError(ConvergenceError):
    """The control plane rejected a command synchronously."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CommandFailure(ConvergenceError):
    """The command ran on the cluster and exited non-zero."""

    def __init__(self, exit_code: int, logs: str = ""):
        super().__init__(f"command failed with exit code {exit_code}")
        self.exit_code = exit_code
        self.logs = logs


class TransportFailure(ConvergenceError):
    """The operation reached a failed terminal state without an exit code."""

    def __init__(self, reason: Optional[str] = None):
        message = "command ended without an exit code"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.reason = reason


class SerializationError(ConvergenceError):
    """A resource object could not be serialized into the manifest archive."""


class CredentialError(ConvergenceError):
    """No credential could be acquired for the control plane."""


class OutputWriteError(ConvergenceError):
    """Captured command output could not be persisted."""


class ConvergenceCancelledError(ConvergenceError):
    """A local wait was aborted; remote commands keep running."""


class DeadlineExceededError(ConvergenceCancelledError):
    """The caller's deadline fired while waiting."""


class StabilityError(ConvergenceError):
    """
    The first object that failed its stability check.

    Failures of sibling checks after the first are only counted.
    """

    def __init__(
        self,
        kind: str,
        name: str,
        namespace: str,
        cause: BaseException,
        additional_failures: int = 0,
    ):
        super().__init__(f"waiting for {kind}/{name} in namespace {namespace} to be stable: {cause}")
        self.kind = kind
        self.name = name
        self.namespace = namespace
        self.cause = cause
        self.additional_failures = additional_failures


class DeploymentError(ConvergenceError):
    """A deploy or clean call failed; `phase` is where it stopped."""

    def __init__(self, phase: DeployPhase, step: str, cause: BaseException):
        super().__init__(f"{step}: {cause}")
        self.phase = phase
        self.step = step
        self.cause = cause

    @property
    def cancelled(self) -> bool:
        return isinstance(self.cause, ConvergenceCancelledError)
