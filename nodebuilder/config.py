"""
config.py

Responsibility: Load the CLI settings into a deterministic, typed model.

Sources, lowest to highest precedence:
- built-in defaults
- `nodebuilder.yml` in the working directory (YAML mapping)
- environment variables (a `.env` file in the working directory is loaded first,
  without overriding variables that are already set)

The pipeline should treat the returned `Settings` as the single source of truth.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, MutableMapping

import yaml

from nodebuilder.errors import NodeBuilderError

logger = logging.getLogger(__name__)

CONFIG_FILE = "nodebuilder.yml"
ENV_FILE = ".env"

DEFAULT_BASE_IMAGE = "kthse/nodejs-echo"
DEFAULT_NODE_VERSION = "12"


class ConfigError(NodeBuilderError, ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    """Configuration shared by every pipeline step."""

    base_image: str = DEFAULT_BASE_IMAGE
    default_node_version: str = DEFAULT_NODE_VERSION
    docker_bin: str = "docker"
    git_branch: str | None = None
    build_number: str | None = None
    ci: bool = False


def parse_env_lines(text: str) -> dict[str, str]:
    """
    Tiny `.env` parser:
    - Reads lines like `KEY=value` (an optional `export ` prefix is accepted)
    - Ignores comments and blank lines, strips matching quotes around values
    """
    data: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export ") :]
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        if key:
            data[key] = value
    return data


def load_env_file(path: str | Path, environ: MutableMapping[str, str]) -> None:
    """Merge a `.env` file into `environ`; variables already set win."""
    env_path = Path(path)
    if not env_path.is_file():
        return
    for key, value in parse_env_lines(env_path.read_text(encoding="utf-8")).items():
        environ.setdefault(key, value)
    logger.debug("Loaded environment from %s", env_path)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must be a mapping/object at the top level.")
    logger.debug("Loaded settings from %s", path)
    return data


def is_ci(environ: MutableMapping[str, str]) -> bool:
    return (environ.get("CI") or "").strip().lower() not in ("", "0", "false", "no")


def load_settings(cwd: str | Path, environ: MutableMapping[str, str] | None = None) -> Settings:
    """
    Build `Settings` for a working directory.

    Recognised `nodebuilder.yml` keys: base_image, default_node_version, docker_bin.
    Recognised environment variables: NODEBUILDER_BASE_IMAGE, NODEBUILDER_NODE_VERSION,
    NODEBUILDER_DOCKER, GIT_LOCAL_BRANCH, BUILD_NUMBER, CI.
    """
    root = Path(cwd)
    env = os.environ if environ is None else environ
    load_env_file(root / ENV_FILE, env)

    data = _load_yaml(root / CONFIG_FILE)
    unknown = set(data) - {"base_image", "default_node_version", "docker_bin"}
    if unknown:
        raise ConfigError(f"Unknown keys in {CONFIG_FILE}: {', '.join(sorted(unknown))}")

    base_image = env.get("NODEBUILDER_BASE_IMAGE") or str(data.get("base_image") or DEFAULT_BASE_IMAGE)
    node_version = env.get("NODEBUILDER_NODE_VERSION") or str(data.get("default_node_version") or DEFAULT_NODE_VERSION)
    docker_bin = env.get("NODEBUILDER_DOCKER") or str(data.get("docker_bin") or "docker")

    return Settings(
        base_image=base_image.strip(),
        default_node_version=node_version.strip(),
        docker_bin=docker_bin.strip(),
        git_branch=env.get("GIT_LOCAL_BRANCH") or None,
        build_number=env.get("BUILD_NUMBER") or None,
        ci=is_ci(env),
    )
