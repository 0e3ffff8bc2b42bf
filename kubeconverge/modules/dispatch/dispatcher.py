import asyncio
import logging
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

import httpx

from ...config.provider import ArmConfig, PollingConfig
from ..api.models import (
    ClusterHandle,
    CommandRequest,
    CommandResult,
    OperationHandle,
    OperationState,
)
from ..auth import Credential
from ..errors import ClusterConnectionError, CommandFailure, DispatchError, TransportFailure
from ..sink import ResultSink

logger = logging.getLogger("kubeconverge.dispatch")


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds or as an HTTP date."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    return max((retry_at - datetime.now(UTC)).total_seconds(), 0.0)


def _error_message(response: httpx.Response) -> str:
    """Extract the ARM error message from a response, if there is one."""
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("code") or str(error)
    return response.text.strip() or response.reason_phrase


class CommandDispatcher:
    def __init__(
        self,
        cluster: ClusterHandle,
        credential: Credential,
        arm_config: Optional[ArmConfig] = None,
        polling_config: Optional[PollingConfig] = None,
        sink: Optional[ResultSink] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize command dispatcher.

        Args:
            cluster: Target managed cluster
            credential: Bearer token source, injected rather than fetched ambiently
            arm_config: Control plane endpoint settings
            polling_config: Operation polling settings
            sink: Where requested command output is persisted
            client: Optional HTTP client; the dispatcher closes only clients it creates
        """
        self.cluster = cluster
        self.credential = credential
        self.arm_config = arm_config or ArmConfig()
        self.polling_config = polling_config or PollingConfig()
        self.sink = sink or ResultSink()

        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.arm_config.endpoint,
                timeout=self.arm_config.request_timeout,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this dispatcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def submit(self, request: CommandRequest) -> OperationHandle:
        """
        Submit a command to the cluster's run command endpoint.

        Args:
            request: Command and optional base64 context

        Returns:
            Handle for the long-running operation

        Raises:
            DispatchError: If the control plane rejects the command
            ClusterConnectionError: If the control plane is unreachable
        """
        body: Dict[str, Any] = {"command": request.command}
        if request.context is not None:
            body["context"] = request.context

        logger.debug(f"Submitting '{request.command}' to {self.cluster.name}")
        response = await self._send(
            "POST",
            f"{self.cluster.id}/runCommand",
            params={"api-version": self.arm_config.api_version},
            json=body,
        )

        if response.status_code == 200:
            # Answered synchronously, nothing left to wait for
            try:
                payload = response.json()
                result = CommandResult.from_arm(payload)
            except ValueError as e:
                raise DispatchError(
                    f"decoding synchronous command result: {e}",
                    status_code=response.status_code,
                ) from e
            return OperationHandle(
                operation_id=payload.get("id") or "synchronous",
                result=result,
            )

        if response.status_code in (201, 202):
            location = response.headers.get("Location") or response.headers.get(
                "Azure-AsyncOperation"
            )
            if not location:
                raise DispatchError(
                    "command accepted without an operation location",
                    status_code=response.status_code,
                )
            return OperationHandle(
                operation_id=httpx.URL(location).path.rstrip("/").rsplit("/", 1)[-1],
                location=location,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )

        raise DispatchError(
            f"command rejected with status {response.status_code}: {_error_message(response)}",
            status_code=response.status_code,
        )

    async def poll(self, handle: OperationHandle) -> CommandResult:
        """
        Wait for an operation to reach a terminal state.

        Sleeps between polls for the remote Retry-After hint, clamped by
        the polling configuration; never spins.

        Args:
            handle: Handle returned by submit()

        Returns:
            Terminal command result

        Raises:
            RuntimeError: If the handle was already polled
            ClusterConnectionError: If the control plane becomes unreachable
            TransportFailure: If the operation status cannot be read
        """
        handle.mark_polled()
        if handle.result is not None and handle.result.state.is_terminal:
            return handle.result
        if handle.location is None:
            raise TransportFailure(f"operation {handle.operation_id} has no status location")

        retry_after = handle.retry_after
        try:
            while True:
                await asyncio.sleep(self.polling_config.next_interval(retry_after))

                response = await self._send("GET", handle.location)
                retry_after = parse_retry_after(response.headers.get("Retry-After"))

                if response.status_code == 202:
                    logger.info(f"Still running command {handle.operation_id} on {self.cluster.name}")
                    continue

                if response.status_code != 200:
                    raise TransportFailure(
                        f"reading operation {handle.operation_id} returned status "
                        f"{response.status_code}: {_error_message(response)}"
                    )

                try:
                    result = CommandResult.from_arm(response.json())
                except ValueError as e:
                    raise TransportFailure(
                        f"decoding result of operation {handle.operation_id}: {e}"
                    ) from e
                if result.state.is_terminal:
                    return result

                logger.info(f"Still running command {handle.operation_id} on {self.cluster.name}")

        except asyncio.CancelledError:
            logger.warning(
                f"Stopped waiting for command {handle.operation_id}; "
                f"it keeps running on {self.cluster.name}"
            )
            raise

    async def complete(
        self, handle: OperationHandle, output_file: Optional[str] = None
    ) -> CommandResult:
        """
        Poll an operation and apply the result contract.

        Captured output is written to `output_file` before the exit code
        is checked, so failures never discard it.

        Raises:
            CommandFailure: If the command exited non-zero
            TransportFailure: If the operation failed without an exit code
            OutputWriteError: If the output file cannot be written
        """
        result = await self.poll(handle)

        logger.info(f"Command output: {result.logs}")
        if output_file:
            await self.sink.write(output_file, result.logs)

        if result.exit_code is not None and result.exit_code != 0:
            raise CommandFailure(result.exit_code, result.logs)
        if result.state is not OperationState.SUCCEEDED:
            raise TransportFailure(result.reason)
        if result.exit_code is None:
            raise TransportFailure(result.reason or "operation succeeded without reporting an exit code")

        return result

    async def run(self, request: CommandRequest) -> CommandResult:
        """Submit a command and wait for it to succeed."""
        logger.info(f"Starting to run command '{request.command}' on {self.cluster.name}")
        handle = await self.submit(request)
        result = await self.complete(handle, output_file=request.output_file)
        logger.info(f"Finished running command '{request.command}' on {self.cluster.name}")
        return result

    async def get_cluster(self) -> Dict[str, Any]:
        """Read the managed cluster resource."""
        response = await self._send(
            "GET", self.cluster.id, params={"api-version": self.arm_config.api_version}
        )
        if response.status_code != 200:
            raise DispatchError(
                f"getting cluster {self.cluster.name}: {_error_message(response)}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise DispatchError(
                f"decoding cluster {self.cluster.name}: {e}", status_code=response.status_code
            ) from e

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        token = await self.credential.get_token()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            return await self.client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise ClusterConnectionError(
                f"reaching {self.arm_config.endpoint} for {self.cluster.name}: {e}"
            ) from e
