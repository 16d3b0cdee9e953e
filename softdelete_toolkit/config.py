"""
Configuration module for the soft delete toolkit.

Configuration is a value object handed to each service when it is created.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SoftDeleteConfig(BaseModel):
    """Behaviour settings for the soft delete services.

    Configuration Sources:
        1. Programmatic settings
        2. Environment variables (SOFTDELETE_ prefix)
        3. Configuration files (.json, .yaml, .yml)

    Example:
        >>> config = SoftDeleteConfig(max_cascade_depth=10)
        >>> service = CascadeSoftDeleteService(store, registry, config=config)

        Loading from environment:

        >>> os.environ['SOFTDELETE_STOP_ON_FIRST_ERROR'] = 'false'
        >>> config = SoftDeleteConfig.from_env()

        Loading from file:

        >>> config = SoftDeleteConfig.from_file('softdelete.yaml')

    Environment Variables:
        Every field can be set with the SOFTDELETE_ prefix, for example
        SOFTDELETE_MAX_CASCADE_DEPTH or SOFTDELETE_CONCURRENCY_RETRIES.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    application_name: str = Field(
        "softdelete", description="Name of the application for audit records"
    )
    max_cascade_depth: int = Field(
        20,
        description="Deepest cascade level before the walk is treated as a cycle",
        ge=1,
        le=1000,
    )
    stop_on_first_error: bool = Field(
        True,
        description="Stop checking root entities after the first problem",
    )
    not_found_is_error: bool = Field(
        True, description="Report unknown keys instead of skipping them"
    )
    concurrency_retries: int = Field(
        0,
        description="Times to retry with fresh data after a concurrency conflict",
        ge=0,
        le=10,
    )
    audit_enabled: bool = Field(
        True, description="Send successful operations to the audit logger"
    )

    @field_validator("application_name")
    @classmethod
    def validate_application_name(cls, v: str) -> str:
        """Ensure the application name is not blank."""
        if not v.strip():
            raise ValueError("Application name cannot be blank")
        return v.strip()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump()

    @classmethod
    def from_env(cls, prefix: str = "SOFTDELETE_") -> "SoftDeleteConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var not in os.environ:
                continue
            value = os.environ[env_var]

            if field_info.annotation is bool:
                config_dict[field_name] = value.strip().lower() in (
                    "true",
                    "1",
                    "yes",
                    "on",
                )
            else:
                # pydantic converts numeric strings and reports bad ones
                config_dict[field_name] = value

        return cls.model_validate(config_dict)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SoftDeleteConfig":
        """
        Load configuration from a JSON or YAML file.

        Args:
            path: Path to a .json, .yaml or .yml file

        Returns:
            Configuration instance

        Raises:
            ValueError: If the file type is not supported or the content is
                not a mapping
        """
        path = Path(path)
        text = path.read_text(encoding="utf-8")

        suffix = path.suffix.lower()
        if suffix == ".json":
            data = json.loads(text)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            raise ValueError(f"Unsupported configuration file type: {path.suffix}")

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")

        return cls.model_validate(data)
