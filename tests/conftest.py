"""
Shared pytest fixtures for kubeconverge tests.

This module provides common fixtures including:
- RunCommandMocker: Mock the managed cluster run command API with canned results
- Dispatcher and cluster instances wired to the mock over httpx.MockTransport
"""

import base64
import io
import json
import os
import sys
import uuid
import zipfile
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Tuple, Union

import httpx
import pytest
import pytest_asyncio

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kubeconverge.config.provider import ArmConfig, PollingConfig, StabilityConfig
from kubeconverge.modules.api import ClusterHandle
from kubeconverge.modules.auth import StaticTokenCredential
from kubeconverge.modules.cluster import ManagedCluster
from kubeconverge.modules.dispatch import CommandDispatcher
from kubeconverge.modules.sink import ResultSink
from kubeconverge.modules.stability import StabilityChecker

ARM_ENDPOINT = "https://management.azure.com"
API_VERSION = "2024-02-01"
TEST_TOKEN = "test-token"
CLUSTER_ID = (
    "/subscriptions/sub-123/resourceGroups/rg-e2e"
    "/providers/Microsoft.ContainerService/managedClusters/cluster-e2e"
)


# =============================================================================
# Run Command Mocking Infrastructure
# =============================================================================

@dataclass
class RunCommandResponse:
    """Represents a mocked run command outcome."""
    exit_code: Optional[int] = 0
    logs: str = ""
    provisioning_state: str = "Succeeded"
    reason: Optional[str] = None
    pending_polls: int = 0
    reject_status: Optional[int] = None
    never_finishes: bool = False
    raw_body: Optional[bytes] = None

    def to_payload(self, command_id: str) -> dict:
        """Convert to a RunCommandResult body."""
        properties = {
            "provisioningState": self.provisioning_state,
            "logs": self.logs,
            "startedAt": "2024-01-01T00:00:00Z",
            "finishedAt": "2024-01-01T00:00:05Z",
        }
        if self.exit_code is not None:
            properties["exitCode"] = self.exit_code
        if self.reason:
            properties["reason"] = self.reason
        return {"id": command_id, "properties": properties}


@dataclass
class RunCommandCall:
    """Record of a run command submitted during testing."""
    command: str
    context: Optional[str]
    command_id: str
    matched_pattern: Optional[str] = None
    response: Optional[RunCommandResponse] = None
    polls: int = 0

    @property
    def archive_entries(self) -> List[Tuple[str, bytes]]:
        """Decode the base64 zip context into ordered (path, bytes) entries."""
        if self.context is None:
            return []
        data = base64.b64decode(self.context)
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            return [(name, archive.read(name)) for name in archive.namelist()]


class RunCommandMocker:
    """
    Mock the managed cluster run command API with pattern-matched results.

    Submissions answer 202 with a commandResults location; polls answer
    202 for `pending_polls` rounds and then the registered result.

    Usage:
        def test_rollout(run_command_mocker):
            run_command_mocker.register("rollout status", RunCommandResponse(
                exit_code=1, logs="timed out"
            ))
            ...
            assert run_command_mocker.was_called_with("rollout status")
    """

    def __init__(self):
        self._responses: List[Tuple[Union[str, Pattern], RunCommandResponse, int]] = []
        self._calls: List[RunCommandCall] = []
        self._operations: Dict[str, RunCommandCall] = {}
        self.events: List[Tuple[str, str]] = []
        self._default_response = RunCommandResponse()

    def register(
        self,
        pattern: Union[str, Pattern],
        response: RunCommandResponse,
        priority: int = 0
    ) -> "RunCommandMocker":
        """
        Register a response for commands matching the pattern.

        Args:
            pattern: String (substring match) or regex pattern
            response: RunCommandResponse to return when matched
            priority: Higher priority patterns are checked first

        Returns:
            self for chaining
        """
        self._responses.append((pattern, response, priority))
        self._responses.sort(key=lambda x: x[2], reverse=True)
        return self

    def set_default_response(self, response: RunCommandResponse) -> "RunCommandMocker":
        """Set the default response for unmatched commands."""
        self._default_response = response
        return self

    def _match(self, command: str) -> Tuple[Optional[str], RunCommandResponse]:
        for pattern, response, _ in self._responses:
            if isinstance(pattern, str):
                if pattern in command:
                    return pattern, response
            elif pattern.search(command):
                return pattern.pattern, response
        return None, self._default_response

    def handler(self, request: httpx.Request) -> httpx.Response:
        """MockTransport handler implementing the run command endpoints."""
        if request.headers.get("Authorization") != f"Bearer {TEST_TOKEN}":
            return httpx.Response(401, json={"error": {"code": "Unauthorized", "message": "bad token"}})

        path = request.url.path
        if request.method == "POST" and path == f"{CLUSTER_ID}/runCommand":
            return self._submit(request)
        if request.method == "GET" and path.startswith(f"{CLUSTER_ID}/commandResults/"):
            return self._poll(path.rsplit("/", 1)[-1])
        if request.method == "GET" and path == CLUSTER_ID:
            return httpx.Response(200, json={"id": CLUSTER_ID, "name": "cluster-e2e"})
        return httpx.Response(404, json={"error": {"code": "NotFound", "message": path}})

    def _submit(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        command = body["command"]
        matched_pattern, response = self._match(command)

        call = RunCommandCall(
            command=command,
            context=body.get("context"),
            command_id=uuid.uuid4().hex,
            matched_pattern=matched_pattern,
            response=response,
        )
        self._calls.append(call)
        self.events.append(("submit", command))

        if response.reject_status is not None:
            return httpx.Response(
                response.reject_status,
                json={"error": {"code": "BadRequest", "message": "command rejected"}},
            )

        self._operations[call.command_id] = call
        return httpx.Response(
            202,
            headers={
                "Location": f"{ARM_ENDPOINT}{CLUSTER_ID}/commandResults/{call.command_id}?api-version={API_VERSION}",
                "Retry-After": "0",
            },
        )

    def _poll(self, command_id: str) -> httpx.Response:
        call = self._operations.get(command_id)
        if call is None:
            return httpx.Response(404, json={"error": {"code": "NotFound", "message": command_id}})

        call.polls += 1
        response = call.response
        if response.never_finishes or call.polls <= response.pending_polls:
            return httpx.Response(202, headers={"Retry-After": "0"})

        self.events.append(("done", call.command))
        if response.raw_body is not None:
            return httpx.Response(200, content=response.raw_body)
        return httpx.Response(200, json=response.to_payload(command_id))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def calls(self) -> List[RunCommandCall]:
        """Get all run commands submitted during the test."""
        return self._calls

    @property
    def commands(self) -> List[str]:
        return [call.command for call in self._calls]

    def was_called_with(self, pattern: str) -> bool:
        """Check if any submitted command contained the given pattern."""
        return any(pattern in call.command for call in self._calls)

    def get_calls_matching(self, pattern: str) -> List[RunCommandCall]:
        """Get all calls containing the given pattern."""
        return [c for c in self._calls if pattern in c.command]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def cluster_handle():
    return ClusterHandle.from_resource_id(CLUSTER_ID)


@pytest.fixture
def credential():
    return StaticTokenCredential(TEST_TOKEN)


@pytest.fixture
def polling_config():
    """Polling that only yields to the event loop between rounds."""
    return PollingConfig(poll_interval=0.001, min_poll_interval=0.001, max_poll_interval=0.01)


@pytest.fixture
def run_command_mocker():
    return RunCommandMocker()


@pytest_asyncio.fixture
async def http_client(run_command_mocker):
    client = httpx.AsyncClient(transport=run_command_mocker.transport, base_url=ARM_ENDPOINT)
    yield client
    await client.aclose()


@pytest.fixture
def dispatcher(cluster_handle, credential, polling_config, http_client, tmp_path):
    return CommandDispatcher(
        cluster_handle,
        credential,
        arm_config=ArmConfig(endpoint=ARM_ENDPOINT, api_version=API_VERSION),
        polling_config=polling_config,
        sink=ResultSink(tmp_path),
        client=http_client,
    )


@pytest.fixture
def managed_cluster(cluster_handle, credential, dispatcher, tmp_path):
    checker = StabilityChecker(dispatcher, StabilityConfig(output_dir=str(tmp_path)))
    return ManagedCluster(cluster_handle, credential, dispatcher=dispatcher, checker=checker)


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring infrastructure"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests requiring a real cluster"
    )
