"""Credential forwarding into workspace containers.

SSH keys are forwarded through the agent socket and never copied, environment
variables pass only through an explicit allowlist, and the gh CLI config is
mounted read-only.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable


class CredentialError(Exception):
    """Raised when a required credential source is unavailable."""


def filter_env(allowlist: Iterable[str]) -> dict[str, str]:
    """Return the host environment variables named in allowlist that are set."""
    return {key: os.environ[key] for key in allowlist if key in os.environ}


def ssh_agent_socket() -> str:
    """Return the host's SSH agent socket path."""
    sock = os.environ.get("SSH_AUTH_SOCK", "")
    if not sock:
        raise CredentialError("SSH_AUTH_SOCK is not set; start an SSH agent or run `ssh-agent`")
    return sock


def gh_config_dir() -> str:
    """Return the gh CLI config directory."""
    configured = os.environ.get("GH_CONFIG_DIR", "")
    if configured:
        return configured
    try:
        home = str(Path.home())
    except (RuntimeError, KeyError):
        home = ""
    return home + "/.config/gh"