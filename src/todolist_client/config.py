"""Application configuration.

Values come from ``TODOLIST_*`` environment variables, optionally seeded from
a ``.env`` file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from todolist_client.auth.models.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "TODOLIST_"

DEFAULT_CACHE_PATH = Path.home() / ".todolist_client" / "token_cache.json"


class AppConfig(BaseModel):
    """Settings identifying the tenant, the client and the todo-list service."""

    aad_instance: str = "https://login.microsoftonline.com/{0}"
    tenant: str
    client_id: str
    redirect_uri: str = "http://localhost:8400"
    todo_list_resource_id: str
    todo_list_base_address: str
    cache_path: Path = DEFAULT_CACHE_PATH
    timeout: float = 30.0

    @field_validator("aad_instance")
    @classmethod
    def validate_instance_template(cls, v: str) -> str:
        if "{0}" not in v and "{tenant}" not in v:
            raise ValueError("aad_instance must contain a {0} tenant placeholder")
        return v

    @property
    def authority(self) -> str:
        """Sign-in URL of the tenant."""
        return self.aad_instance.replace("{tenant}", "{0}").format(self.tenant)

    @property
    def msal_cache_path(self) -> Path:
        """MSAL token cache, refresh tokens included, kept beside cache_path."""
        return self.cache_path.with_name("msal_token_cache.json")

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> AppConfig:
        """Build config from ``TODOLIST_*`` keys, ignoring everything else."""
        fields = {
            key[len(ENV_PREFIX) :].lower(): value
            for key, value in values.items()
            if key.startswith(ENV_PREFIX) and value
        }
        try:
            return cls(**fields)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> AppConfig:
        """Load config from the environment, reading a .env file first.

        Variables already set in the environment take precedence over the
        file.
        """
        if load_dotenv(env_file):
            logger.debug(f"Loaded environment from {env_file or '.env'}")
        return cls.from_mapping(os.environ)
