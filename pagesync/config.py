"""Configuration loading — YAML file plus ``PAGESYNC_*`` environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml

DEFAULT_BRANCH = "gitea-pages"
DEFAULT_INTERVAL = 300  # seconds between full reconciliations
DEFAULT_LISTEN_ADDR = ":3000"
DEFAULT_REPO_SUFFIX = ".git"

ENV_PREFIX = "PAGESYNC_"

# Config keys that may be overridden from the environment
_ENV_KEYS = ("repositories", "target", "token", "listen_addr", "branch", "interval")


class ConfigError(ValueError):
    """Configuration is missing or invalid."""


@dataclass
class SyncConfig:
    """Settings shared by the engine, the scheduler and the webhook receiver."""

    repositories: Path
    """Root of the bare source repositories (``owner/name.git``)."""

    target: Path
    """Root of the deployment directories (``owner/name``)."""

    token: str = ""
    """Shared secret expected in the webhook ``Authorization: Bearer`` header."""

    listen_addr: str = DEFAULT_LISTEN_ADDR
    branch: str = DEFAULT_BRANCH
    interval: float = DEFAULT_INTERVAL
    repo_suffix: str = DEFAULT_REPO_SUFFIX

    def __post_init__(self) -> None:
        self.repositories = Path(self.repositories)
        self.target = Path(self.target)
        if not self.branch:
            raise ConfigError("branch must not be empty")
        try:
            self.interval = float(self.interval)
        except (TypeError, ValueError):
            raise ConfigError(f"interval must be a number of seconds: {self.interval!r}")
        if self.interval <= 0:
            raise ConfigError("interval must be positive")

    @property
    def host(self) -> str:
        return parse_listen_addr(self.listen_addr)[0]

    @property
    def port(self) -> int:
        return parse_listen_addr(self.listen_addr)[1]

    def require_token(self) -> str:
        if not self.token:
            raise ConfigError(f"{ENV_PREFIX}TOKEN is unset")
        return self.token


def parse_listen_addr(addr: str) -> tuple[str, int]:
    """Split ``host:port`` (host optional) into its parts."""
    host, sep, port = addr.rpartition(":")
    if not sep:
        host, port = "", addr
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigError(f"Invalid listen address: {addr!r}")
    return host or "0.0.0.0", port_num


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SyncConfig:
    """Load configuration from an optional YAML file and the environment.

    Environment variables (``PAGESYNC_REPOSITORIES``, ``PAGESYNC_TARGET``,
    ``PAGESYNC_TOKEN``, ``PAGESYNC_LISTEN_ADDR``, ``PAGESYNC_BRANCH``,
    ``PAGESYNC_INTERVAL``) take precedence over values from the file.

    Raises:
        ConfigError: If the file is unreadable or a required value is missing.
    """
    env = os.environ if environ is None else environ
    data: dict = {}

    if path:
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read config file {path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

    for key in _ENV_KEYS:
        value = env.get(ENV_PREFIX + key.upper())
        if value:
            data[key] = value

    for key in ("repositories", "target"):
        if not data.get(key):
            raise ConfigError(f"{ENV_PREFIX}{key.upper()} is unset")

    return SyncConfig(
        repositories=data["repositories"],
        target=data["target"],
        token=str(data.get("token", "")),
        listen_addr=str(data.get("listen_addr", DEFAULT_LISTEN_ADDR)),
        branch=str(data.get("branch", DEFAULT_BRANCH)),
        interval=data.get("interval", DEFAULT_INTERVAL),
        repo_suffix=str(data.get("repo_suffix", DEFAULT_REPO_SUFFIX)),
    )
