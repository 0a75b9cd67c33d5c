"""Docker container management for workspaces, driven through the docker CLI."""

from __future__ import annotations

import json
import logging
import subprocess
import sys
from dataclasses import dataclass, field
from typing import Callable, Mapping, Sequence

CONTAINER_NAME_PREFIX = "sailo-"
SSH_AGENT_SOCKET_IN_CONTAINER = "/run/ssh-agent.sock"
GH_CONFIG_IN_CONTAINER = "/root/.config/gh"
WORKSPACE_DIR = "/workspace"
STOP_TIMEOUT_SECONDS = 10


class ContainerError(Exception):
    """Raised when a container operation fails."""


@dataclass
class CreateOptions:
    """Settings for a new workspace container."""

    workspace_id: str
    image: str
    ports: dict[int, int] = field(default_factory=dict)  # container port -> host port
    ssh_auth_sock: str = ""
    env_vars: dict[str, str] = field(default_factory=dict)
    gh_config_dir: str = ""


@dataclass
class ContainerState:
    """Basic status of a container."""

    running: bool
    status: str


def build_env_list(env: Mapping[str, str] | None) -> list[str]:
    """Return KEY=VALUE entries sorted by key."""
    return [f"{key}={value}" for key, value in sorted((env or {}).items())]


def build_port_bindings(ports: Mapping[int, int] | None) -> dict[str, list[dict[str, str]]]:
    """Map "<port>/tcp" to its host bindings, bound to 127.0.0.1 only."""
    return {
        f"{container_port}/tcp": [{"host_ip": "127.0.0.1", "host_port": str(host_port)}]
        for container_port, host_port in sorted((ports or {}).items())
    }


def build_binds(ssh_auth_sock: str, gh_config_dir: str) -> list[str]:
    """Return volume mounts for the SSH agent socket and the gh config."""
    binds = []
    if ssh_auth_sock:
        binds.append(f"{ssh_auth_sock}:{SSH_AGENT_SOCKET_IN_CONTAINER}")
    if gh_config_dir:
        binds.append(f"{gh_config_dir}:{GH_CONFIG_IN_CONTAINER}:ro")
    return binds


def short_id(container_id: str) -> str:
    """Return the first 12 characters of a container ID."""
    return container_id[:12]


def _format_cmd(cmd: Sequence[str]) -> str:
    return "[" + " ".join(cmd) + "]"


def _failure_text(completed: subprocess.CompletedProcess) -> str:
    for stream in (completed.stderr, completed.stdout):
        if stream and str(stream).strip():
            return str(stream).strip()
    return f"exit status {completed.returncode}"


class ContainerClient:
    """Manages workspace containers on the local Docker daemon."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        docker: str = "docker",
        runner: Callable[..., subprocess.CompletedProcess] | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._docker = docker
        self._runner = runner or subprocess.run

    def __enter__(self) -> "ContainerClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # --- process helpers -----------------------------------------------------

    def _invoke(self, args: Sequence[str], **kwargs) -> subprocess.CompletedProcess:
        try:
            return self._runner([self._docker, *args], **kwargs)
        except OSError as exc:
            raise ContainerError(f"run {self._docker}: {exc}") from exc

    def _call(self, args: Sequence[str]) -> str:
        completed = self._invoke(
            args, capture_output=True, text=True, encoding="utf-8", errors="replace", check=False
        )
        if completed.returncode != 0:
            raise ContainerError(_failure_text(completed))
        return (completed.stdout or "").strip()

    # --- daemon --------------------------------------------------------------

    def ping(self) -> None:
        """Check that the Docker daemon is reachable."""
        try:
            self._call(["version", "--format", "{{.Server.Version}}"])
        except ContainerError as exc:
            raise ContainerError(
                f"docker daemon not reachable: {exc}\n\nIs Docker running? Try: docker info"
            ) from exc

    def _ensure_image(self, image: str) -> None:
        completed = self._invoke(
            ["image", "inspect", image], capture_output=True, text=True, check=False
        )
        if completed.returncode == 0:
            self._logger.debug("image already present: %s", image)
            return
        self._logger.info("pulling image %s", image)
        try:
            self._call(["pull", image])
        except ContainerError as exc:
            raise ContainerError(f"pull image {image}: {exc}") from exc

    # --- lifecycle -----------------------------------------------------------

    def create_workspace(self, options: CreateOptions) -> str:
        """Create and start a workspace container and return its ID."""
        try:
            self._ensure_image(options.image)
        except ContainerError as exc:
            raise ContainerError(f"ensure image {options.image}: {exc}") from exc

        name = CONTAINER_NAME_PREFIX + options.workspace_id
        args = ["create", "--name", name, "--label", "managed-by=sailo", "--tty"]
        for entry in build_env_list(options.env_vars):
            args += ["--env", entry]
        for port, bindings in build_port_bindings(options.ports).items():
            args += ["--expose", port]
            for binding in bindings:
                args += ["--publish", f"{binding['host_ip']}:{binding['host_port']}:{port}"]
        for bind in build_binds(options.ssh_auth_sock, options.gh_config_dir):
            args += ["--volume", bind]
        args += [options.image, "sleep", "infinity"]

        try:
            container_id = self._call(args)
        except ContainerError as exc:
            raise ContainerError(f"create container: {exc}") from exc

        try:
            self._call(["start", container_id])
        except ContainerError as exc:
            try:
                self._call(["rm", "--force", container_id])
            except ContainerError:
                pass
            raise ContainerError(f"start container: {exc}") from exc

        self._logger.info("container created and started: id=%s name=%s", short_id(container_id), name)
        return container_id

    def stop_container(self, container_id: str) -> None:
        """Stop a running container."""
        try:
            self._call(["stop", "--time", str(STOP_TIMEOUT_SECONDS), container_id])
        except ContainerError as exc:
            raise ContainerError(f"stop container {short_id(container_id)}: {exc}") from exc
        self._logger.info("container stopped: %s", short_id(container_id))

    def start_container(self, container_id: str) -> None:
        """Start a stopped container."""
        try:
            self._call(["start", container_id])
        except ContainerError as exc:
            raise ContainerError(f"start container {short_id(container_id)}: {exc}") from exc
        self._logger.info("container started: %s", short_id(container_id))

    def remove_container(self, container_id: str) -> None:
        """Remove a container together with its volumes."""
        try:
            self._call(["rm", "--force", "--volumes", container_id])
        except ContainerError as exc:
            raise ContainerError(f"remove container {short_id(container_id)}: {exc}") from exc
        self._logger.info("container removed: %s", short_id(container_id))

    # --- exec ----------------------------------------------------------------

    def _exec_raw(self, container_id: str, cmd: Sequence[str]) -> str:
        completed = self._invoke(
            ["exec", container_id, *cmd],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
        output = (completed.stdout or "").strip()
        if completed.returncode != 0:
            raise ContainerError(
                f"command {_format_cmd(cmd)} exited with code {completed.returncode}: {output}"
            )
        return output

    def exec_in_container(self, container_id: str, cmd: Sequence[str]) -> None:
        """Run cmd in the container; raise with its output if it fails."""
        self._exec_raw(container_id, cmd)

    def exec_with_output(self, container_id: str, cmd: Sequence[str]) -> str:
        """Run cmd in the container and return its trimmed output."""
        return self._exec_raw(container_id, cmd)

    def exec_interactive(self, container_id: str, cmd: Sequence[str]) -> int:
        """Run cmd in /workspace attached to this terminal; return its exit code."""
        args = ["exec", "--interactive", "--workdir", WORKSPACE_DIR]
        if sys.stdin is not None and sys.stdin.isatty():
            args.append("--tty")
        args += [container_id, *cmd]
        completed = self._invoke(args, check=False)
        return completed.returncode

    def inspect_container(self, container_id: str) -> ContainerState:
        """Return whether the container is running, and its status."""
        try:
            raw = self._call(["inspect", "--type", "container", "--format", "{{json .State}}", container_id])
            state = json.loads(raw)
            if not isinstance(state, dict):
                raise ValueError(f"unexpected state {raw!r}")
        except (ContainerError, ValueError) as exc:
            raise ContainerError(f"inspect container {short_id(container_id)}: {exc}") from exc
        return ContainerState(running=bool(state.get("Running")), status=str(state.get("Status") or ""))

    def close(self) -> None:
        """Release the client; the CLI keeps no connection open."""