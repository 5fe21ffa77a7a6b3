"""Credential selection.

The authentication mode is read once at startup and resolved into a single
credential instance that the blob store and analysis client share.
"""
import os
import time
from enum import Enum
from typing import Optional

from azure.core.credentials import AccessToken, TokenCredential
from azure.identity import ClientSecretCredential, DefaultAzureCredential, ManagedIdentityCredential

from docportal.exceptions import ConfigError
from docportal.logging import get_logger

logger = get_logger(__name__)

DEVELOPMENT_TOKEN = "development-token"


class AuthMode(str, Enum):
    DEVELOPMENT_FIXED = "development"
    MANAGED_IDENTITY = "managed_identity"
    SERVICE_PRINCIPAL = "service_principal"
    DEFAULT_CHAIN = "default"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "AuthMode":
        """Parse a configured mode name; empty means the default chain."""
        if raw is None or not raw.strip():
            return cls.DEFAULT_CHAIN
        key = raw.strip().lower().replace("-", "_")
        mode = _ALIASES.get(key)
        if mode is None:
            choices = sorted({m.value for m in cls})
            raise ConfigError(f"Unknown authentication mode '{raw}'. Choose from: {choices}")
        return mode


_ALIASES = {
    **{mode.value: mode for mode in AuthMode},
    "developmentstorage": AuthMode.DEVELOPMENT_FIXED,
    "managedidentity": AuthMode.MANAGED_IDENTITY,
    "serviceprincipal": AuthMode.SERVICE_PRINCIPAL,
    "defaultcredential": AuthMode.DEFAULT_CHAIN,
}


class FixedTokenCredential:
    """Static token for local development against Azurite; never authenticates."""

    def __init__(self, token: str = DEVELOPMENT_TOKEN, lifetime_seconds: int = 3600):
        self._token = token
        self._lifetime = lifetime_seconds

    def get_token(self, *scopes: str, **kwargs) -> AccessToken:
        return AccessToken(self._token, int(time.time()) + self._lifetime)

    def close(self) -> None:
        pass


def build_credential(
    mode: AuthMode,
    client_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    client_secret: Optional[str] = None,
) -> TokenCredential:
    """Resolve an AuthMode into a concrete credential.

    Identity values default to the AZURE_CLIENT_ID / AZURE_TENANT_ID /
    AZURE_CLIENT_SECRET environment variables.

    Raises:
        ConfigError: if service principal settings are incomplete.
    """
    client_id = client_id or os.getenv("AZURE_CLIENT_ID")

    if mode is AuthMode.DEVELOPMENT_FIXED:
        logger.warning("credential_selected", extra={"mode": mode.value, "note": "local development only"})
        return FixedTokenCredential()

    if mode is AuthMode.MANAGED_IDENTITY:
        logger.info("credential_selected", extra={"mode": mode.value, "user_assigned": bool(client_id)})
        if client_id:
            return ManagedIdentityCredential(client_id=client_id)
        return ManagedIdentityCredential()

    if mode is AuthMode.SERVICE_PRINCIPAL:
        tenant_id = tenant_id or os.getenv("AZURE_TENANT_ID")
        client_secret = client_secret or os.getenv("AZURE_CLIENT_SECRET")
        if not (tenant_id and client_id and client_secret):
            raise ConfigError(
                "Service principal authentication requires AZURE_TENANT_ID, "
                "AZURE_CLIENT_ID, and AZURE_CLIENT_SECRET"
            )
        logger.info("credential_selected", extra={"mode": mode.value})
        return ClientSecretCredential(tenant_id, client_id, client_secret)

    logger.info("credential_selected", extra={"mode": mode.value})
    return DefaultAzureCredential(
        exclude_visual_studio_code_credential=True,
        exclude_powershell_credential=True,
        exclude_interactive_browser_credential=True,
    )


def credential_from_env() -> TokenCredential:
    """Build the process credential from AZURE_AUTH_MODE."""
    return build_credential(AuthMode.parse(os.getenv("AZURE_AUTH_MODE")))
