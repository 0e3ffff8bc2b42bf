"""
Credentials for the cluster control plane.

Credentials are constructed explicitly and injected into the dispatcher.
Acquisition failures are fatal and never retried.
"""

import asyncio
import logging
import time
from typing import Optional, Protocol

import httpx

from ...config.provider import CredentialConfig
from ..errors import CredentialError

logger = logging.getLogger("kubeconverge.auth")

DEFAULT_AUTHORITY = "https://login.microsoftonline.com"
DEFAULT_SCOPE = "https://management.azure.com/.default"


class Credential(Protocol):
    """Protocol for bearer token sources - allows swappable implementations."""

    async def get_token(self) -> str:
        """
        Return a bearer token for the control plane.

        Raises:
            CredentialError: If no token can be acquired
        """
        ...


class StaticTokenCredential:
    """A token acquired elsewhere, valid for the lifetime of this object."""

    def __init__(self, token: str):
        if not token:
            raise CredentialError("Static token is empty")
        self._token = token

    async def get_token(self) -> str:
        return self._token


class ClientCredential:
    """
    OAuth2 client credentials grant for a service principal.

    This class handles:
    - Token requests against the identity platform
    - Token caching until shortly before expiry
    """

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        scope: str = DEFAULT_SCOPE,
        authority: str = DEFAULT_AUTHORITY,
        refresh_margin: float = 300.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize client credential.

        Args:
            tenant_id: Directory (tenant) id
            client_id: Application (client) id
            client_secret: Client secret
            scope: Requested scope
            authority: Identity platform base URL
            refresh_margin: Seconds before expiry a cached token is replaced
            client: Optional shared HTTP client
        """
        self.token_url = f"{authority.rstrip('/')}/{tenant_id}/oauth2/v2.0/token"
        self.client_id = client_id
        self._client_secret = client_secret
        self.scope = scope
        self.refresh_margin = refresh_margin
        self._client = client

        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        if self._is_fresh():
            return self._token

        async with self._lock:
            if self._is_fresh():
                return self._token
            self._token, self._expires_at = await self._request_token()
            return self._token

    def _is_fresh(self) -> bool:
        return self._token is not None and time.time() < self._expires_at - self.refresh_margin

    async def _request_token(self) -> tuple[str, float]:
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "scope": self.scope,
        }
        logger.debug(f"Requesting token for client {self.client_id}")

        try:
            if self._client is not None:
                response = await self._client.post(self.token_url, data=data)
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(self.token_url, data=data)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise CredentialError(f"requesting token for client {self.client_id}: {e}") from e
        except ValueError as e:
            raise CredentialError(f"decoding token response: {e}") from e

        token = payload.get("access_token")
        if not token:
            raise CredentialError("token response did not contain an access_token")

        expires_in = float(payload.get("expires_in", 3600))
        return token, time.time() + expires_in


def build_credential(config: CredentialConfig) -> Credential:
    """
    Build a credential from configuration.

    A static token wins over a service principal.
    """
    if config.is_static:
        return StaticTokenCredential(config.token)
    if config.is_client_credential:
        return ClientCredential(
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )
    raise CredentialError("No credential configured")
