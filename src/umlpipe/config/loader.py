"""YAML configuration loading for umlpipe.

Loads umlpipe.yaml with engine and bridge settings.

Example umlpipe.yaml:

    version: 1
    log_level: DEBUG
    log_dir: logs            # relative to this config file

    engine:
      java: /usr/bin/java
      jar_path: ../tools/plantuml.jar
      render_timeout: 10

    bridge:
      port_range_start: 8080
      port_range_end: 8090
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from loguru import logger
from pydantic import BaseModel, Field, PrivateAttr, model_validator

from umlpipe.paths import get_config_path, get_effective_cwd, resolve_engine_jar

# Current config schema version
CURRENT_CONFIG_VERSION = 1

CONFIG_ENV_VAR = "UMLPIPE_CONFIG"

# Engine flags selecting streaming pipe mode with SVG output
ENGINE_PIPE_ARGS = ["-pipe", "-tsvg", "-charset", "UTF-8"]


class EngineConfig(BaseModel):
    """Rendering engine process configuration."""

    java: str = Field(default="java", description="Java executable name or path")
    jar_path: str | None = Field(
        default=None,
        description="Path to plantuml.jar (relative to config dir, or absolute)",
    )
    java_options: list[str] = Field(
        default_factory=lambda: ["-Djava.awt.headless=true", "-Dfile.encoding=UTF-8"],
        description="JVM options placed before -jar",
    )
    command: list[str] | None = Field(
        default=None,
        description="Full argv override replacing the java launch (alternative engines)",
    )
    render_timeout: float = Field(
        default=10.0,
        ge=0.05,
        le=300.0,
        description="Seconds to wait for a rendered frame before restarting the engine",
    )
    stop_timeout: float = Field(
        default=5.0,
        ge=0.0,
        le=60.0,
        description="Seconds to wait after terminate before killing the engine",
    )


class BridgeConfig(BaseModel):
    """Local HTTP bridge configuration."""

    port_range_start: int = Field(
        default=8080, ge=1, le=65535, description="First port tried in automatic mode"
    )
    port_range_end: int = Field(
        default=8090, ge=1, le=65535, description="Last port tried in automatic mode"
    )
    port: int | None = Field(
        default=None,
        ge=1024,
        le=65535,
        description="Preferred manual port (skips the automatic scan)",
    )

    @model_validator(mode="after")
    def _check_range(self) -> BridgeConfig:
        if self.port_range_start > self.port_range_end:
            raise ValueError(
                f"port_range_start ({self.port_range_start}) must not exceed "
                f"port_range_end ({self.port_range_end})"
            )
        return self


class UmlPipeConfig(BaseModel):
    """Root configuration for umlpipe."""

    # Directory of the loaded config file (not serialized)
    _config_dir: Path | None = PrivateAttr(default=None)

    version: int = Field(
        default=CURRENT_CONFIG_VERSION,
        description="Config schema version for migration support",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_dir: str | None = Field(
        default="logs",
        description="Directory for log files (relative to config dir); null disables file logging",
    )
    engine: EngineConfig = Field(default_factory=EngineConfig)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)

    def _resolve_config_relative_path(self, path_str: str) -> Path:
        """Resolve a path relative to the config directory.

        Absolute paths and ~ paths are used as-is; relative paths resolve
        against the config file's directory, or cwd/.umlpipe without one.
        """
        path = Path(path_str).expanduser()
        if path.is_absolute():
            return path
        base = self._config_dir or (get_effective_cwd() / ".umlpipe")
        return (base / path).resolve()

    def get_log_dir_path(self) -> Path | None:
        """Get the resolved log directory, or None if file logging is off."""
        if not self.log_dir:
            return None
        return self._resolve_config_relative_path(self.log_dir)

    def get_engine_jar_path(self) -> Path:
        """Get the path where the engine jar is expected."""
        configured = (
            self._resolve_config_relative_path(self.engine.jar_path)
            if self.engine.jar_path
            else None
        )
        return resolve_engine_jar(configured)

    def get_engine_command(self) -> list[str]:
        """Build the argv used to launch the engine in pipe mode."""
        if self.engine.command:
            return list(self.engine.command)
        return [
            self.engine.java,
            *self.engine.java_options,
            "-jar",
            str(self.get_engine_jar_path()),
            *ENGINE_PIPE_ARGS,
        ]


def _resolve_config_path(config_path: Path | str | None) -> Path | None:
    """Resolve config path from explicit path, env var, or default locations.

    Resolution order:
    1. Explicit config_path if provided
    2. UMLPIPE_CONFIG env var
    3. cwd/.umlpipe/umlpipe.yaml
    4. ~/.umlpipe/umlpipe.yaml
    5. None (use defaults)
    """
    if config_path is not None:
        return Path(config_path)

    env_config = os.getenv(CONFIG_ENV_VAR)
    if env_config:
        return Path(env_config)

    return get_config_path()


def _load_yaml_file(config_path: Path) -> dict[str, Any]:
    """Load and parse YAML file with error handling.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If YAML is invalid or file can't be read.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with config_path.open() as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Error reading {config_path}: {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ValueError(f"Invalid configuration in {config_path}: expected a mapping")
    return raw_data


def _validate_version(data: dict[str, Any], config_path: Path) -> None:
    """Validate config version and set default if missing.

    Raises:
        ValueError: If version is unsupported.
    """
    config_version = data.get("version")
    if config_version is None:
        logger.debug(f"Config file {config_path} has no 'version', assuming 1")
        data["version"] = 1
    elif not isinstance(config_version, int) or config_version > CURRENT_CONFIG_VERSION:
        raise ValueError(
            f"Config version {config_version} is not supported. "
            f"Maximum supported version is {CURRENT_CONFIG_VERSION}."
        )


def load_config(config_path: Path | str | None = None) -> UmlPipeConfig:
    """Load umlpipe configuration from YAML file.

    Args:
        config_path: Path to config file (overrides resolution)

    Returns:
        Validated UmlPipeConfig

    Raises:
        FileNotFoundError: If explicit config path doesn't exist
        ValueError: If YAML is invalid or validation fails
    """
    resolved_path = _resolve_config_path(config_path)

    if resolved_path is None:
        logger.debug("No config file found, using defaults")
        config = UmlPipeConfig()
        config._config_dir = get_effective_cwd() / ".umlpipe"
        return config

    logger.debug(f"Loading config from {resolved_path}")

    raw_data = _load_yaml_file(resolved_path)
    _validate_version(raw_data, resolved_path)

    try:
        config = UmlPipeConfig.model_validate(raw_data)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {resolved_path}: {e}") from e

    config._config_dir = resolved_path.parent.resolve()
    return config


# Global config instance
_config: UmlPipeConfig | None = None


def get_config(
    config_path: Path | str | None = None, reload: bool = False
) -> UmlPipeConfig:
    """Get or load the global configuration.

    Args:
        config_path: Path to config file (only used on first load)
        reload: Force reload configuration

    Returns:
        UmlPipeConfig instance
    """
    global _config

    if _config is None or reload:
        _config = load_config(config_path)

    return _config
