import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from ...config.provider import ConfigProvider, EnvConfigProvider
from ..api.models import ClusterHandle, CommandRequest, DeployPhase, ResourceObject
from ..auth import Credential
from ..coordinator import wait_stable
from ..dispatch import CommandDispatcher
from ..errors import ConvergenceError, DeadlineExceededError, DeploymentError
from ..manifest import package_manifests
from ..sink import ResultSink
from ..stability import StabilityChecker

logger = logging.getLogger("kubeconverge.cluster")

APPLY_COMMAND = "kubectl apply -f manifests/"
DELETE_COMMAND = "kubectl delete -f manifests/"


@dataclass
class CallProgress:
    """Phase of one deploy or clean call; never shared between calls."""

    command: str
    phase: Optional[DeployPhase] = None

    def step(self) -> str:
        """Describe the step the call is in, for error messages."""
        if self.phase is DeployPhase.PACKAGING:
            return "zipping manifests"
        if self.phase is DeployPhase.SUBMITTING:
            return f"submitting {self.command}"
        if self.phase is DeployPhase.CHECKING_STABILITY:
            return "waiting for resources to be stable"
        return f"running {self.command}"


class ManagedCluster:
    """
    Deploys and cleans resource objects on a managed cluster.

    Each call walks PACKAGING -> SUBMITTING -> AWAITING_COMPLETION
    [-> CHECKING_STABILITY] -> DONE, or stops in FAILED with a
    DeploymentError naming the step. Nothing is retried. Each call tracks
    its own phase; `phase` only mirrors the latest transition of any call.
    """

    def __init__(
        self,
        handle: ClusterHandle,
        credential: Credential,
        config_provider: Optional[ConfigProvider] = None,
        dispatcher: Optional[CommandDispatcher] = None,
        checker: Optional[StabilityChecker] = None,
    ):
        """
        Initialize managed cluster.

        Args:
            handle: Target cluster
            credential: Control plane credential
            config_provider: Configuration source (environment by default)
            dispatcher: Optional pre-built dispatcher
            checker: Optional pre-built stability checker
        """
        provider = config_provider or EnvConfigProvider()
        stability_config = provider.get_stability_config()

        self.handle = handle
        self.dispatcher = dispatcher or CommandDispatcher(
            handle,
            credential,
            arm_config=provider.get_arm_config(),
            polling_config=provider.get_polling_config(),
            sink=ResultSink(stability_config.output_dir),
        )
        self.checker = checker or StabilityChecker(self.dispatcher, stability_config)
        self.phase: Optional[DeployPhase] = None

    @classmethod
    def load(cls, resource_id: str, credential: Credential, **kwargs) -> "ManagedCluster":
        """Load an existing cluster from its ARM resource id."""
        return cls(ClusterHandle.from_resource_id(resource_id), credential, **kwargs)

    async def __aenter__(self) -> "ManagedCluster":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.dispatcher.aclose()

    def get_id(self) -> str:
        return self.handle.id

    async def get_cluster(self) -> Dict[str, Any]:
        """Get the managed cluster resource."""
        logger.info(f"Starting to get cluster {self.handle.name} in {self.handle.resource_group}")
        cluster = await self.dispatcher.get_cluster()
        logger.info(f"Finished getting cluster {self.handle.name}")
        return cluster

    async def deploy(self, objects: Iterable[ResourceObject], timeout: Optional[float] = None) -> None:
        """
        Apply objects and wait until every one of them is stable.

        Args:
            objects: Objects in apply order
            timeout: Optional deadline in seconds for the whole call

        Raises:
            DeploymentError: Naming the failing step; the cause is chained
        """
        logger.info(f"Starting to deploy resources to {self.handle.name} in {self.handle.resource_group}")
        await self._execute(APPLY_COMMAND, list(objects), check_stability=True, timeout=timeout)
        logger.info(f"Finished deploying resources to {self.handle.name}")

    async def clean(self, objects: Iterable[ResourceObject], timeout: Optional[float] = None) -> None:
        """
        Delete objects. Deletion has no stability phase.

        Raises:
            DeploymentError: Naming the failing step; the cause is chained
        """
        logger.info(f"Starting to clean resources from {self.handle.name} in {self.handle.resource_group}")
        await self._execute(DELETE_COMMAND, list(objects), check_stability=False, timeout=timeout)
        logger.info(f"Finished cleaning resources from {self.handle.name}")

    async def _execute(
        self,
        command: str,
        objects: list[ResourceObject],
        check_stability: bool,
        timeout: Optional[float],
    ) -> None:
        call = CallProgress(command)
        try:
            async with asyncio.timeout(timeout):
                await self._converge(call, objects, check_stability)
        except TimeoutError as e:
            phase = call.phase
            step = call.step()
            self._transition(call, DeployPhase.FAILED)
            deadline = DeadlineExceededError(f"deadline of {timeout}s exceeded during {phase.value}")
            logger.error(f"{step} on {self.handle.name} failed during {phase.value}: {deadline}")
            raise DeploymentError(phase, step, deadline) from e

    async def _converge(self, call: CallProgress, objects: list[ResourceObject], check_stability: bool) -> None:
        self._transition(call, DeployPhase.PACKAGING)
        try:
            archive = package_manifests(objects)
            context = archive.encode()
        except ConvergenceError as e:
            raise self._fail(call, e) from e

        self._transition(call, DeployPhase.SUBMITTING)
        request = CommandRequest(command=call.command, context=context)
        try:
            handle = await self.dispatcher.submit(request)
        except ConvergenceError as e:
            raise self._fail(call, e) from e

        self._transition(call, DeployPhase.AWAITING_COMPLETION)
        try:
            await self.dispatcher.complete(handle)
        except ConvergenceError as e:
            raise self._fail(call, e) from e

        if check_stability:
            self._transition(call, DeployPhase.CHECKING_STABILITY)
            try:
                await wait_stable(self.checker, objects)
            except ConvergenceError as e:
                raise self._fail(call, e) from e

        self._transition(call, DeployPhase.DONE)

    def _transition(self, call: CallProgress, phase: DeployPhase) -> None:
        logger.debug(f"{self.handle.name}: {call.phase.value if call.phase else 'start'} -> {phase.value}")
        call.phase = phase
        # Latest transition of any call, for display only
        self.phase = phase

    def _fail(self, call: CallProgress, cause: ConvergenceError) -> DeploymentError:
        phase = call.phase
        step = call.step()
        self._transition(call, DeployPhase.FAILED)
        logger.error(f"{step} on {self.handle.name} failed during {phase.value}: {cause}")
        return DeploymentError(phase, step, cause)

