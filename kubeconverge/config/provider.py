"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass
class ArmConfig:
    """Control plane (ARM) endpoint configuration."""
    endpoint: str = "https://management.azure.com"
    api_version: str = "2024-02-01"
    request_timeout: float = 30.0


@dataclass
class PollingConfig:
    """Long-running operation polling configuration."""
    poll_interval: float = 5.0
    min_poll_interval: float = 1.0
    max_poll_interval: float = 30.0

    def next_interval(self, retry_after: Optional[float]) -> float:
        """Delay before the next poll, honouring the remote Retry-After hint."""
        interval = self.poll_interval if retry_after is None else retry_after
        return min(max(interval, self.min_poll_interval), self.max_poll_interval)


@dataclass
class StabilityConfig:
    """Stability check configuration."""
    job_pod_running_timeout: str = "20s"
    job_complete_timeout: str = "10s"
    output_dir: str = "."


@dataclass
class CredentialConfig:
    """Credential configuration."""
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    token: Optional[str] = None

    @property
    def is_static(self) -> bool:
        """Check if a pre-acquired token is configured."""
        return bool(self.token)

    @property
    def is_client_credential(self) -> bool:
        """Check if a service principal is fully configured."""
        return all([self.tenant_id, self.client_id, self.client_secret])


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_arm_config(self) -> ArmConfig:
        """Get control plane configuration."""
        ...

    def get_polling_config(self) -> PollingConfig:
        """Get polling configuration."""
        ...

    def get_stability_config(self) -> StabilityConfig:
        """Get stability check configuration."""
        ...

    def get_credential_config(self) -> CredentialConfig:
        """Get credential configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_arm_config(self) -> ArmConfig:
        """Get control plane configuration from environment variables."""
        return ArmConfig(
            endpoint=os.getenv("ARM_ENDPOINT", "https://management.azure.com").rstrip("/"),
            api_version=os.getenv("ARM_API_VERSION", "2024-02-01"),
            request_timeout=float(os.getenv("ARM_REQUEST_TIMEOUT", "30")),
        )

    def get_polling_config(self) -> PollingConfig:
        """Get polling configuration from environment variables."""
        config = PollingConfig(
            poll_interval=float(os.getenv("POLL_INTERVAL", "5")),
            min_poll_interval=float(os.getenv("POLL_MIN_INTERVAL", "1")),
            max_poll_interval=float(os.getenv("POLL_MAX_INTERVAL", "30")),
        )
        if config.min_poll_interval > config.max_poll_interval:
            raise ValueError(
                "POLL_MIN_INTERVAL must not exceed POLL_MAX_INTERVAL "
                f"({config.min_poll_interval} > {config.max_poll_interval})"
            )
        return config

    def get_stability_config(self) -> StabilityConfig:
        """Get stability check configuration from environment variables."""
        return StabilityConfig(
            job_pod_running_timeout=os.getenv("JOB_POD_RUNNING_TIMEOUT", "20s"),
            job_complete_timeout=os.getenv("JOB_COMPLETE_TIMEOUT", "10s"),
            output_dir=os.getenv("JOB_OUTPUT_DIR", "."),
        )

    def get_credential_config(self) -> CredentialConfig:
        """Get credential configuration from environment variables."""
        config = CredentialConfig(
            tenant_id=os.getenv("AZURE_TENANT_ID"),
            client_id=os.getenv("AZURE_CLIENT_ID"),
            client_secret=os.getenv("AZURE_CLIENT_SECRET"),
            token=os.getenv("AZURE_ACCESS_TOKEN"),
        )

        # No ambient fallback - the caller must configure one explicitly
        if not (config.is_static or config.is_client_credential):
            raise ValueError(
                "No credential configured. Set AZURE_ACCESS_TOKEN, or "
                "AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET."
            )
        return config
