"""Path resolution for umlpipe global and project directories.

umlpipe uses a two-tier directory structure:
- Global: ~/.umlpipe/ - user-wide config and the default engine jar location
- Project: .umlpipe/ - project-specific config

Neither directory is created automatically.
"""

from __future__ import annotations

import os
from pathlib import Path

# Directory names
GLOBAL_DIR_NAME = ".umlpipe"
PROJECT_DIR_NAME = ".umlpipe"

# Default config filename inside either directory
CONFIG_FILENAME = "umlpipe.yaml"

# Default engine archive filename
ENGINE_JAR_NAME = "plantuml.jar"

# Environment overrides
CWD_ENV_VAR = "UMLPIPE_CWD"
ENGINE_JAR_ENV_VAR = "UMLPIPE_PLANTUML_JAR"


def get_effective_cwd() -> Path:
    """Get the effective working directory.

    Returns UMLPIPE_CWD if set, else Path.cwd().

    Returns:
        Resolved Path for working directory
    """
    env_cwd = os.getenv(CWD_ENV_VAR)
    if env_cwd:
        return Path(env_cwd).resolve()
    return Path.cwd()


def get_global_dir() -> Path:
    """Get the global umlpipe directory path.

    Returns:
        Path to ~/.umlpipe/ (not necessarily existing)
    """
    return Path.home() / GLOBAL_DIR_NAME


def get_config_path() -> Path | None:
    """Find a config file in the project or global directory.

    Resolution order:
    1. cwd/.umlpipe/umlpipe.yaml (project-specific)
    2. ~/.umlpipe/umlpipe.yaml (global)

    Returns:
        Path to config file if found, None otherwise
    """
    project_config = get_effective_cwd() / PROJECT_DIR_NAME / CONFIG_FILENAME
    if project_config.exists():
        return project_config

    global_config = get_global_dir() / CONFIG_FILENAME
    if global_config.exists():
        return global_config

    return None


def resolve_engine_jar(configured: Path | None = None) -> Path:
    """Locate the engine jar.

    Resolution order:
    1. configured path (from engine.jar_path)
    2. UMLPIPE_PLANTUML_JAR env var
    3. cwd/plantuml.jar
    4. ~/.umlpipe/plantuml.jar

    The returned path is not checked for existence when it comes from
    explicit configuration; for the fallback locations the first existing
    one wins and the last candidate is returned if none exist, so error
    messages can name where the jar was expected.

    Args:
        configured: Explicitly configured jar path, if any

    Returns:
        Path where the jar is (or is expected to be)
    """
    if configured is not None:
        return configured.expanduser()

    env_jar = os.getenv(ENGINE_JAR_ENV_VAR)
    if env_jar:
        return Path(env_jar).expanduser()

    candidates = [
        get_effective_cwd() / ENGINE_JAR_NAME,
        get_global_dir() / ENGINE_JAR_NAME,
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[-1]
