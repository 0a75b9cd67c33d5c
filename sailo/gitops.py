"""Git operations for workspaces.

Each workspace gets a shallow clone inside its container; clone, branch,
diff, commit and push run there. get_remote_url runs on the host.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Protocol, Sequence

WORKSPACE_DIR = "/workspace"


class GitError(Exception):
    """Raised when a git operation fails."""


class ContainerExecer(Protocol):
    """Runs commands inside a container."""

    def exec_in_container(self, container_id: str, cmd: Sequence[str]) -> None: ...

    def exec_with_output(self, container_id: str, cmd: Sequence[str]) -> str: ...


class GitManager:
    """Runs git commands inside workspace containers."""

    def __init__(self, container: ContainerExecer, logger: logging.Logger | None = None) -> None:
        self._container = container
        self._logger = logger or logging.getLogger(__name__)

    def _run(self, container_id: str, cmd: list[str], what: str) -> None:
        try:
            self._container.exec_in_container(container_id, cmd)
        except Exception as exc:
            raise GitError(f"{what}: {exc}") from exc

    def clone(self, container_id: str, repo_url: str, branch: str, target_dir: str) -> None:
        """Shallow-clone repo_url at branch into target_dir."""
        cmd = ["git", "clone", "--depth=1", "--branch", branch, repo_url, target_dir]
        self._run(container_id, cmd, "git clone")
        self._logger.info("cloned repository %s (branch %s) into %s", repo_url, branch, target_dir)

    def create_branch(self, container_id: str, workspace_dir: str, branch_name: str) -> None:
        """Create and check out branch_name."""
        cmd = ["git", "-C", workspace_dir, "checkout", "-b", branch_name]
        self._run(container_id, cmd, f"create branch {branch_name}")
        self._logger.info("created branch %s", branch_name)

    def diff(self, container_id: str, workspace_dir: str, stat_only: bool = False) -> str:
        """Return the diff of uncommitted changes, or its diffstat."""
        cmd = ["git", "-C", workspace_dir, "diff"]
        if stat_only:
            cmd.append("--stat")
        try:
            return self._container.exec_with_output(container_id, cmd)
        except Exception as exc:
            raise GitError(f"git diff: {exc}") from exc

    def commit_all(self, container_id: str, workspace_dir: str, message: str) -> None:
        """Stage every change and commit it with message."""
        self._run(container_id, ["git", "-C", workspace_dir, "add", "-A"], "git add")
        self._run(container_id, ["git", "-C", workspace_dir, "commit", "-m", message], "git commit")

    def push(self, container_id: str, workspace_dir: str) -> None:
        """Push the current branch to origin."""
        cmd = ["git", "-C", workspace_dir, "push", "-u", "origin", "HEAD"]
        self._run(container_id, cmd, "git push")


def get_remote_url() -> str:
    """Return the origin URL of the git repository in the current directory."""
    try:
        completed = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise GitError(f"get git remote URL: {exc} (are you in a git repository?)") from exc
    return completed.stdout.strip()