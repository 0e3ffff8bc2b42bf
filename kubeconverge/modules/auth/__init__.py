"""Authentication module for the cluster control plane."""

from .credential import ClientCredential, Credential, StaticTokenCredential, build_credential

__all__ = ["ClientCredential", "Credential", "StaticTokenCredential", "build_credential"]
