"""Lifecycle orchestration of isolated agent workspaces.

A workspace is a container, a git clone and a set of host ports. The
manager creates workspaces, moves them between states and cleans up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from sailo.config import ConfigError, ProjectConfig, UserConfig, default_user_config, load_project_config
from sailo.container import ContainerState, CreateOptions, short_id
from sailo.creds import CredentialError, filter_env, gh_config_dir, ssh_agent_socket
from sailo.detect import DetectionResult
from sailo.gitops import WORKSPACE_DIR, get_remote_url
from sailo.ids import generate_id, slugify
from sailo.state import State, Workspace
from sailo.store import Store

_INSTALL_GIT = (
    "which git > /dev/null 2>&1 || (apt-get update && apt-get install -y "
    "--no-install-recommends git openssh-client && rm -rf /var/lib/apt/lists/*)"
)
_SSH_KEYSCAN = "mkdir -p /root/.ssh && ssh-keyscan github.com >> /root/.ssh/known_hosts 2>/dev/null"
_SSH_SOCKET_IN_CONTAINER = "/run/ssh-agent.sock"


class WorkspaceError(Exception):
    """Raised when a workspace operation fails."""


class _ContainerBackend(Protocol):
    def ping(self) -> None: ...

    def create_workspace(self, options: CreateOptions) -> str: ...

    def stop_container(self, container_id: str) -> None: ...

    def start_container(self, container_id: str) -> None: ...

    def remove_container(self, container_id: str) -> None: ...

    def exec_in_container(self, container_id: str, cmd: Sequence[str]) -> None: ...

    def exec_with_output(self, container_id: str, cmd: Sequence[str]) -> str: ...

    def inspect_container(self, container_id: str) -> ContainerState: ...


class _PortAllocator(Protocol):
    def allocate(self, container_port: int) -> int: ...


class _GitOperator(Protocol):
    def clone(self, container_id: str, repo_url: str, branch: str, target_dir: str) -> None: ...

    def create_branch(self, container_id: str, workspace_dir: str, branch_name: str) -> None: ...


class _ProjectDetector(Protocol):
    def detect(self, project_dir) -> DetectionResult: ...


@dataclass
class CreateRequest:
    """What a new workspace should be built from."""

    task: str
    from_branch: str = "main"
    image: str = ""  # empty means auto-detect


class WorkspaceManager:
    """Creates, stops, starts and removes workspaces."""

    def __init__(
        self,
        store: Store,
        container: _ContainerBackend,
        ports: _PortAllocator,
        git: _GitOperator,
        detector: _ProjectDetector,
        user_config: UserConfig | None = None,
        logger: logging.Logger | None = None,
        remote_url: Callable[[], str] = get_remote_url,
        project_dir=".",
    ) -> None:
        self._store = store
        self._container = container
        self._ports = ports
        self._git = git
        self._detector = detector
        self._user_config = user_config or default_user_config()
        self._logger = logger or logging.getLogger(__name__)
        self._remote_url = remote_url
        self._project_dir = project_dir

    # --- creation ------------------------------------------------------------

    def _load_project_config(self) -> ProjectConfig | None:
        try:
            return load_project_config(self._project_dir)
        except ConfigError as exc:
            self._logger.debug("ignoring unreadable project config: %s", exc)
            return None

    def _allocate_ports(self, container_ports: list[int]) -> dict[int, int]:
        port_map: dict[int, int] = {}
        for container_port in container_ports:
            try:
                port_map[container_port] = self._ports.allocate(container_port)
            except Exception as exc:
                raise WorkspaceError(f"allocate port for {container_port}: {exc}") from exc
        return port_map

    def _save(self, workspace: Workspace) -> None:
        try:
            self._store.save(workspace)
        except Exception as exc:
            raise WorkspaceError(f"save workspace: {exc}") from exc

    def _discard(self, workspace_id: str, container_id: str) -> None:
        if container_id:
            try:
                self._container.remove_container(container_id)
            except Exception as exc:
                self._logger.warning("could not remove container during cleanup: %s", exc)
        try:
            self._store.delete(workspace_id)
        except Exception as exc:
            self._logger.warning("could not delete workspace record during cleanup: %s", exc)

    def create(self, request: CreateRequest) -> Workspace:
        """Provision a new isolated workspace and return it in the running state."""
        try:
            self._container.ping()
        except Exception as exc:
            raise WorkspaceError(str(exc)) from exc

        ws_id = generate_id()
        branch = f"sailo/{ws_id}/{slugify(request.task)}"

        project_cfg = self._load_project_config()
        try:
            detection = self._detector.detect(self._project_dir)
        except Exception as exc:
            raise WorkspaceError(f"detect project: {exc}") from exc

        image = detection.base_image
        if project_cfg is not None and project_cfg.image:
            image = project_cfg.image
        if request.image:
            image = request.image

        try:
            repo_url = self._remote_url()
        except Exception as exc:
            raise WorkspaceError(f"detect git remote: {exc}") from exc

        container_ports = list(detection.ports)
        if project_cfg is not None and project_cfg.ports:
            container_ports = sorted(project_cfg.ports)
        port_map = self._allocate_ports(container_ports)

        workspace = Workspace(
            id=ws_id,
            task=request.task,
            state=State.CREATING,
            branch=branch,
            ports=port_map,
            from_branch=request.from_branch,
        )
        self._save(workspace)

        try:
            ssh_sock = ssh_agent_socket()
        except CredentialError:
            ssh_sock = ""
        env_vars = filter_env(self._user_config.env_passthrough)
        if ssh_sock:
            env_vars["SSH_AUTH_SOCK"] = _SSH_SOCKET_IN_CONTAINER

        try:
            container_id = self._container.create_workspace(
                CreateOptions(
                    workspace_id=ws_id,
                    image=image,
                    ports=port_map,
                    ssh_auth_sock=ssh_sock,
                    env_vars=env_vars,
                    gh_config_dir=gh_config_dir(),
                )
            )
        except Exception as exc:
            self._discard(ws_id, "")
            raise WorkspaceError(f"create container: {exc}") from exc
        workspace.container_id = container_id

        def fail(what: str, exc: Exception) -> WorkspaceError:
            self._discard(ws_id, container_id)
            return WorkspaceError(f"{what}: {exc}")

        try:
            self._container.exec_in_container(container_id, ["sh", "-c", _INSTALL_GIT])
        except Exception as exc:
            raise fail("install git in container", exc) from exc

        try:
            self._container.exec_in_container(container_id, ["sh", "-c", _SSH_KEYSCAN])
        except Exception as exc:
            self._logger.debug("ssh-keyscan failed (continuing): %s", exc)

        try:
            self._git.clone(container_id, repo_url, request.from_branch, WORKSPACE_DIR)
        except Exception as exc:
            raise fail("clone repository", exc) from exc

        try:
            self._git.create_branch(container_id, WORKSPACE_DIR, branch)
        except Exception as exc:
            raise fail("create branch", exc) from exc

        if project_cfg is not None:
            for command in project_cfg.setup:
                self._logger.info("running setup command: %s", command)
                try:
                    self._container.exec_in_container(
                        container_id, ["sh", "-c", f"cd {WORKSPACE_DIR} && {command}"]
                    )
                except Exception as exc:
                    self._logger.warning("setup command failed (continuing): %s: %s", command, exc)

        try:
            workspace.transition(State.RUNNING)
        except Exception as exc:
            raise fail("transition to running", exc) from exc
        self._save(workspace)

        self._logger.info(
            "workspace created: id=%s branch=%s container=%s ports=%s",
            ws_id,
            branch,
            short_id(container_id),
            port_map,
        )
        return workspace

    # --- state changes -------------------------------------------------------

    def _fetch(self, workspace_id: str) -> Workspace:
        try:
            return self._store.get(workspace_id)
        except Exception as exc:
            raise WorkspaceError(f"get workspace: {exc}") from exc

    def stop(self, workspace_id: str) -> None:
        """Stop a running workspace, keeping its state."""
        workspace = self._fetch(workspace_id)
        try:
            workspace.transition(State.STOPPED)
        except Exception as exc:
            raise WorkspaceError(f"cannot stop workspace: {exc}") from exc
        try:
            self._container.stop_container(workspace.container_id)
        except Exception as exc:
            raise WorkspaceError(f"stop container: {exc}") from exc
        self._save(workspace)
        self._logger.info("workspace stopped: %s", workspace_id)

    def start(self, workspace_id: str) -> None:
        """Resume a stopped workspace."""
        workspace = self._fetch(workspace_id)
        try:
            workspace.transition(State.RUNNING)
        except Exception as exc:
            raise WorkspaceError(f"cannot start workspace: {exc}") from exc
        try:
            self._container.start_container(workspace.container_id)
        except Exception as exc:
            raise WorkspaceError(f"start container: {exc}") from exc
        self._save(workspace)
        self._logger.info("workspace started: %s", workspace_id)

    def remove(self, workspace_id: str) -> None:
        """Destroy a workspace's container and mark it removed."""
        workspace = self._fetch(workspace_id)

        if workspace.state == State.RUNNING and workspace.container_id:
            try:
                self._container.stop_container(workspace.container_id)
            except Exception as exc:
                self._logger.warning("could not stop container before removal: %s", exc)

        if workspace.container_id:
            try:
                self._container.remove_container(workspace.container_id)
            except Exception as exc:
                self._logger.warning("could not remove container: %s", exc)

        try:
            workspace.transition(State.REMOVED)
        except Exception as exc:
            raise WorkspaceError(f"cannot remove workspace: {exc}") from exc
        self._save(workspace)
        self._logger.info("workspace removed: %s", workspace_id)

    # --- queries -------------------------------------------------------------

    def list(self, include_archived: bool = False) -> list[Workspace]:
        """Return workspaces, including archived ones on request."""
        return self._store.list(include_archived)

    def get(self, workspace_id: str) -> Workspace:
        """Return the workspace with workspace_id."""
        return self._store.get(workspace_id)