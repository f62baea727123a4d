"""Client configuration for the PKCE authorization code flow."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from pkceflow.models.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "PKCE_"

_TRUTHY = {"1", "true", "yes", "on"}


class ClientConfig(BaseModel):
    """Public client settings for one authorization server.

    Environment variables (see from_env):
        PKCE_CLIENT_ID: Registered client ID (required)
        PKCE_AUTHORIZATION_ENDPOINT: Authorization endpoint URL (required)
        PKCE_TOKEN_ENDPOINT: Token endpoint URL (required)
        PKCE_REDIRECT_URI: Redirect URI (default: http://127.0.0.1:8080/callback)
        PKCE_SCOPE: Space-separated scopes (optional)
        PKCE_VERIFIER_LENGTH: Code verifier length (default: 64)
        PKCE_ALLOW_PLAIN_CHALLENGE: Allow the plain method fallback (default: false)
        PKCE_TIMEOUT: HTTP timeout in seconds (default: 30)
    """

    client_id: str = Field(min_length=1)
    authorization_endpoint: str
    token_endpoint: str
    redirect_uri: str = "http://127.0.0.1:8080/callback"
    scope: str | None = None
    verifier_length: int = Field(default=64, ge=1)
    allow_plain_challenge: bool = False
    timeout: float = Field(default=30.0, gt=0)

    @field_validator("authorization_endpoint", "token_endpoint", "redirect_uri")
    @classmethod
    def validate_absolute_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must be absolute http(s): {v}")
        return v

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Create a ClientConfig from PKCE_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            Validated ClientConfig

        Raises:
            ConfigurationError: If a required variable is missing or invalid
        """
        env = os.environ if environ is None else environ

        missing = [
            name
            for name in ("CLIENT_ID", "AUTHORIZATION_ENDPOINT", "TOKEN_ENDPOINT")
            if not env.get(f"{ENV_PREFIX}{name}")
        ]
        if missing:
            raise ConfigurationError(
                "Missing required environment variables: "
                + ", ".join(f"{ENV_PREFIX}{name}" for name in missing)
            )

        values: dict[str, object] = {
            "client_id": env[f"{ENV_PREFIX}CLIENT_ID"],
            "authorization_endpoint": env[f"{ENV_PREFIX}AUTHORIZATION_ENDPOINT"],
            "token_endpoint": env[f"{ENV_PREFIX}TOKEN_ENDPOINT"],
        }

        optional = {
            "redirect_uri": "REDIRECT_URI",
            "scope": "SCOPE",
            "verifier_length": "VERIFIER_LENGTH",
            "timeout": "TIMEOUT",
        }
        for field_name, env_name in optional.items():
            value = env.get(f"{ENV_PREFIX}{env_name}")
            if value:
                values[field_name] = value

        plain = env.get(f"{ENV_PREFIX}ALLOW_PLAIN_CHALLENGE")
        if plain is not None:
            values["allow_plain_challenge"] = plain.strip().lower() in _TRUTHY

        try:
            config = cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid client configuration: {e}") from e

        logger.info(
            f"Loaded client configuration from environment: "
            f"client_id={config.client_id}, "
            f"authorization_endpoint={config.authorization_endpoint}"
        )
        return config
