import logging
from typing import Awaitable, Callable, Dict, Optional, Protocol

from ...config.provider import StabilityConfig
from ..api.models import CommandRequest, CommandResult, ResourceObject, StabilityStrategy
from ..sink import job_output_name

logger = logging.getLogger("kubeconverge.stability")

# Kinds compatible with `kubectl rollout status`
# https://kubernetes.io/docs/concepts/workloads/
WORKLOAD_KINDS = ("Deployment", "StatefulSet", "DaemonSet")

_KIND_STRATEGIES: Dict[str, StabilityStrategy] = {
    **{kind: StabilityStrategy.ROLLOUT_STATUS for kind in WORKLOAD_KINDS},
    "Pod": StabilityStrategy.READINESS_WAIT,
    "Job": StabilityStrategy.JOB_COMPLETION,
}


def classify(kind: str) -> StabilityStrategy:
    """Map a resource kind to its stability strategy; unknown kinds need no check."""
    return _KIND_STRATEGIES.get(kind, StabilityStrategy.NO_CHECK)


def register_strategy(kind: str, strategy: StabilityStrategy) -> None:
    """Register (or replace) the strategy used for a resource kind."""
    strategy = StabilityStrategy(strategy)
    _KIND_STRATEGIES[kind] = strategy
    logger.debug(f"Registered {strategy.value} for kind {kind}")


class CommandRunner(Protocol):
    """Anything that runs a command to success, e.g. CommandDispatcher."""

    async def run(self, request: CommandRequest) -> CommandResult:
        ...


class StabilityChecker:
    """Runs the stability strategy for one object at a time."""

    def __init__(self, runner: CommandRunner, config: Optional[StabilityConfig] = None):
        """
        Initialize stability checker.

        Args:
            runner: Command runner; failures propagate as its errors
            config: Job wait bounds
        """
        self.runner = runner
        self.config = config or StabilityConfig()
        self._checks: Dict[StabilityStrategy, Callable[[ResourceObject], Awaitable[None]]] = {
            StabilityStrategy.ROLLOUT_STATUS: self._check_rollout,
            StabilityStrategy.READINESS_WAIT: self._check_ready,
            StabilityStrategy.JOB_COMPLETION: self._check_job,
            StabilityStrategy.NO_CHECK: self._no_check,
        }

    async def check(self, obj: ResourceObject) -> StabilityStrategy:
        """
        Wait until an object is stable.

        Returns:
            The strategy that was applied
        """
        strategy = classify(obj.kind)
        logger.info(f"Checking stability of {obj.describe()} ({strategy.value})")
        await self._checks[strategy](obj)
        return strategy

    async def _check_rollout(self, obj: ResourceObject) -> None:
        # No local timeout; the remote side bounds the rollout wait
        await self.runner.run(
            CommandRequest(
                command=f"kubectl rollout status {obj.kind}/{obj.name} -n {obj.resolved_namespace}"
            )
        )

    async def _check_ready(self, obj: ResourceObject) -> None:
        await self.runner.run(
            CommandRequest(
                command=(
                    f"kubectl wait --for=condition=Ready pod/{obj.name} "
                    f"-n {obj.resolved_namespace}"
                )
            )
        )

    async def _check_job(self, obj: ResourceObject) -> None:
        namespace = obj.resolved_namespace

        # Jobs are stable once complete; their logs are kept in a file of their own
        logger.info(f"Following logs of job/{obj.name} -n {namespace}")
        try:
            await self.runner.run(
                CommandRequest(
                    command=(
                        f"kubectl logs --pod-running-timeout={self.config.job_pod_running_timeout} "
                        f"--follow job/{obj.name} -n {namespace}"
                    ),
                    output_file=job_output_name(obj.name),
                )
            )
        except Exception:
            logger.warning(f"Following logs of job/{obj.name} -n {namespace} failed, not waiting for completion")
            raise

        logger.info(f"Checking completion of job/{obj.name} -n {namespace}")
        await self.runner.run(
            CommandRequest(
                command=(
                    f"kubectl wait --for=condition=complete "
                    f"--timeout={self.config.job_complete_timeout} job/{obj.name} -n {namespace}"
                )
            )
        )

    async def _no_check(self, obj: ResourceObject) -> None:
        logger.debug(f"No stability check for {obj.describe()}")
