import subprocess
from unittest import mock

import pytest

from sailo.gitops import WORKSPACE_DIR, GitError, GitManager, get_remote_url


class _FakeExecer:
    def __init__(self, output="", fail_on=None):
        self.output = output
        self.fail_on = fail_on
        self.calls = []

    def _maybe_fail(self, cmd):
        if self.fail_on is not None and self.fail_on in cmd:
            raise RuntimeError("boom")

    def exec_in_container(self, container_id, cmd):
        self.calls.append((container_id, list(cmd)))
        self._maybe_fail(cmd)

    def exec_with_output(self, container_id, cmd):
        self.calls.append((container_id, list(cmd)))
        self._maybe_fail(cmd)
        return self.output


def test_clone_command():
    execer = _FakeExecer()
    GitManager(execer).clone("c1", "repo-url", "main", WORKSPACE_DIR)
    assert execer.calls == [
        ("c1", ["git", "clone", "--depth=1", "--branch", "main", "repo-url", "/workspace"])
    ]


def test_clone_failure_wrapped():
    execer = _FakeExecer(fail_on="clone")
    with pytest.raises(GitError, match="^git clone: boom"):
        GitManager(execer).clone("c1", "repo-url", "main", WORKSPACE_DIR)


def test_create_branch_command():
    execer = _FakeExecer()
    GitManager(execer).create_branch("c1", WORKSPACE_DIR, "sailo/ws-1/task")
    assert execer.calls == [
        ("c1", ["git", "-C", "/workspace", "checkout", "-b", "sailo/ws-1/task"])
    ]


def test_create_branch_failure_names_branch():
    execer = _FakeExecer(fail_on="checkout")
    with pytest.raises(GitError, match="create branch feature-x"):
        GitManager(execer).create_branch("c1", WORKSPACE_DIR, "feature-x")


def test_diff_returns_output():
    execer = _FakeExecer(output="diff text")
    result = GitManager(execer).diff("c1", WORKSPACE_DIR, False)
    assert result == "diff text"
    assert execer.calls == [("c1", ["git", "-C", "/workspace", "diff"])]


def test_diff_stat_only_appends_flag():
    execer = _FakeExecer(output="1 file changed")
    GitManager(execer).diff("c1", WORKSPACE_DIR, True)
    assert execer.calls[0][1][-1] == "--stat"


def test_diff_failure_wrapped():
    execer = _FakeExecer(fail_on="diff")
    with pytest.raises(GitError, match="^git diff:"):
        GitManager(execer).diff("c1", WORKSPACE_DIR, False)


def test_commit_all_stages_then_commits():
    execer = _FakeExecer()
    GitManager(execer).commit_all("c1", WORKSPACE_DIR, "my message")
    assert [cmd for _, cmd in execer.calls] == [
        ["git", "-C", "/workspace", "add", "-A"],
        ["git", "-C", "/workspace", "commit", "-m", "my message"],
    ]


def test_commit_all_stops_when_add_fails():
    execer = _FakeExecer(fail_on="add")
    with pytest.raises(GitError, match="^git add:"):
        GitManager(execer).commit_all("c1", WORKSPACE_DIR, "msg")
    assert len(execer.calls) == 1


def test_commit_failure_wrapped():
    execer = _FakeExecer(fail_on="commit")
    with pytest.raises(GitError, match="^git commit:"):
        GitManager(execer).commit_all("c1", WORKSPACE_DIR, "msg")


def test_push_command():
    execer = _FakeExecer()
    GitManager(execer).push("c1", WORKSPACE_DIR)
    assert execer.calls == [("c1", ["git", "-C", "/workspace", "push", "-u", "origin", "HEAD"])]


def test_push_failure_wrapped():
    execer = _FakeExecer(fail_on="push")
    with pytest.raises(GitError, match="^git push:"):
        GitManager(execer).push("c1", WORKSPACE_DIR)


def test_get_remote_url_strips_output():
    completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="repo-url\n", stderr="")
    with mock.patch("subprocess.run", return_value=completed) as run:
        assert get_remote_url() == "repo-url"
    assert run.call_args.args[0] == ["git", "remote", "get-url", "origin"]


def test_get_remote_url_failure():
    error = subprocess.CalledProcessError(128, ["git", "remote", "get-url", "origin"])
    with mock.patch("subprocess.run", side_effect=error):
        with pytest.raises(GitError, match="are you in a git repository"):
            get_remote_url()


def test_get_remote_url_git_missing():
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("git")):
        with pytest.raises(GitError, match="^get git remote URL"):
            get_remote_url()