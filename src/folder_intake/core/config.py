"""Configuration system for folder-intake.

This module implements the configuration schema using Pydantic for
validation, with support for environment variable resolution and fail-fast
validation with actionable error messages. Invalid settings (for example an
empty extension allow-list) are rejected here and never reach the scanner.
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Final, Self

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from folder_intake.core.exceptions import ConfigurationError, EnvironmentVariableError
from folder_intake.core.filesystem.entries import DEFAULT_BATCH_SIZE
from folder_intake.core.filesystem.policy import (
    CRITICAL_FOLDERS,
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_IGNORE_FILE_NAME,
    DEFAULT_MAX_FILE_SIZE,
    EXCLUDED_FOLDERS,
    ExclusionPolicy,
    normalize_extensions,
)
from folder_intake.core.filesystem.scanner import DEFAULT_MAX_CONCURRENT_LISTINGS

# Matches ${VARIABLE_NAME} where VARIABLE_NAME contains letters, digits, and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")


class FilterConfig(BaseModel):
    """Admission rules applied to every dropped entry.

    Defines the extension allow-list, the size limit, hidden/system folder
    handling and the name of the ignore-rules file read at each root.
    """

    allowed_extensions: Annotated[
        list[str],
        Field(description="File extensions admitted for ingestion (case-insensitive, no leading dot)"),
    ] = sorted(DEFAULT_ALLOWED_EXTENSIONS)
    max_file_size: Annotated[
        int,
        Field(gt=0, description="Largest admitted file size in bytes"),
    ] = DEFAULT_MAX_FILE_SIZE
    excluded_folders: Annotated[
        list[str],
        Field(description="Folder names excluded unless hidden folders are included"),
    ] = sorted(EXCLUDED_FOLDERS)
    critical_folders: Annotated[
        list[str],
        Field(description="Folder names excluded even when hidden folders are included"),
    ] = sorted(CRITICAL_FOLDERS)
    include_hidden: Annotated[
        bool,
        Field(description="Admit dot-folders that are not critical"),
    ] = False
    ignore_file_name: Annotated[
        str,
        Field(min_length=1, description="Ignore-rules file looked up directly inside each dropped folder"),
    ] = DEFAULT_IGNORE_FILE_NAME

    @field_validator("allowed_extensions", mode="after")
    @classmethod
    def validate_allowed_extensions(cls, v: list[str]) -> list[str]:
        """Normalize extensions and reject an empty allow-list.

        Raises:
            ValueError: If no usable extension remains
        """
        normalized = normalize_extensions(v)
        if not normalized:
            msg = "At least one allowed file extension must be configured"
            raise ValueError(msg)
        invalid = sorted(ext for ext in normalized if "/" in ext or " " in ext)
        if invalid:
            msg = f"Invalid file extension(s): {', '.join(invalid)}"
            raise ValueError(msg)
        return sorted(normalized)

    @model_validator(mode="after")
    def validate_critical_subset(self) -> Self:
        """Ensure critical folders are a strict subset of excluded folders.

        Raises:
            ValueError: If the critical set is not strictly smaller
        """
        critical = set(self.critical_folders)
        excluded = set(self.excluded_folders)
        if not critical < excluded:
            msg = (
                "critical_folders must be a strict subset of excluded_folders; "
                f"not excluded: {', '.join(sorted(critical - excluded)) or '(none)'}"
            )
            raise ValueError(msg)
        return self

    def build_policy(self) -> ExclusionPolicy:
        """Create a fresh exclusion policy for one scan session."""
        return ExclusionPolicy(
            allowed_extensions=self.allowed_extensions,
            max_file_size=self.max_file_size,
            excluded_folders=self.excluded_folders,
            critical_folders=self.critical_folders,
            include_hidden=self.include_hidden,
        )


class ScanConfig(BaseModel):
    """Tuning for directory enumeration."""

    batch_size: Annotated[
        int,
        Field(gt=0, description="Entries returned per directory-listing batch by the local backend"),
    ] = DEFAULT_BATCH_SIZE
    max_concurrent_listings: Annotated[
        int,
        Field(gt=0, description="Maximum number of directories listed at the same time"),
    ] = DEFAULT_MAX_CONCURRENT_LISTINGS


class ApplicationConfig(BaseModel):
    """Application-level settings."""

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "WARNING"
    log_file: Annotated[
        Path | None,
        Field(description="Optional file receiving log records"),
    ] = None


class IntakeConfig(BaseModel):
    """Top-level configuration container.

    Sections:
    - filters: Admission rules
    - scan: Directory enumeration tuning
    - application: Logging settings
    """

    filters: Annotated[FilterConfig, Field(description="Admission rules")] = FilterConfig()
    scan: Annotated[ScanConfig, Field(description="Directory enumeration tuning")] = ScanConfig()
    application: Annotated[ApplicationConfig, Field(description="Application-level settings")] = ApplicationConfig()


def resolve_env_var(value: str) -> str:
    """Resolve ${VARIABLE_NAME} references in a string value.

    Raises:
        EnvironmentVariableError: If a referenced environment variable is missing

    Examples:
        >>> os.environ["INTAKE_LIMIT"] = "1024"
        >>> resolve_env_var("${INTAKE_LIMIT}")
        '1024'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the application."
            )
            raise EnvironmentVariableError(msg)
        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def resolve_env_vars(data: object) -> object:
    """Recursively resolve environment variables in YAML data.

    Strings are resolved, mappings and lists are traversed, every other value
    is returned unchanged.
    """
    if isinstance(data, str):
        return resolve_env_var(data)
    if isinstance(data, Mapping):
        return {key: resolve_env_vars(value) for key, value in data.items()}  # pyright: ignore[reportUnknownVariableType]  # YAML boundary
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]  # pyright: ignore[reportUnknownVariableType]  # YAML boundary
    return data


def load_config(config_path: Path | None) -> IntakeConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to the YAML file, or None for built-in defaults

    Returns:
        Validated IntakeConfig instance

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    if config_path is None:
        return IntakeConfig()

    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location or omit --config."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    # An empty file means "all defaults"
    if raw_data is None:
        return IntakeConfig()

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}\n"
            f"Configuration file must contain key-value pairs."
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars(raw_data)
    except EnvironmentVariableError as e:
        msg = (
            f"Environment variable resolution failed in: {config_path}\n"
            f"{e}\n"
            f"Set the required environment variable before starting the application."
        )
        raise ConfigurationError(msg) from e

    try:
        return IntakeConfig.model_validate(resolved_data)
    except ValidationError as e:
        raise ConfigurationError(format_validation_error(e, source=config_path)) from e


def format_validation_error(error: ValidationError, *, source: Path | str) -> str:
    """Render a Pydantic validation error as field-level diagnostics."""
    error_lines = ["Configuration validation failed:", ""]
    for item in error.errors():
        field_path = " → ".join(str(loc) for loc in item["loc"]) or "(root)"
        error_lines.append(f"  Field: {field_path}")
        error_lines.append(f"  Error: {item['msg']}")
        error_lines.append(f"  Type: {item['type']}")
        error_lines.append("")

    error_lines.append(f"Configuration source: {source}")
    error_lines.append("Please fix the above errors and try again.")
    return "\n".join(error_lines)
