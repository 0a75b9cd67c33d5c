import subprocess

import pytest

from sailo.container import (
    ContainerClient,
    ContainerError,
    ContainerState,
    CreateOptions,
    build_binds,
    build_env_list,
    build_port_bindings,
    short_id,
)


class FakeDocker:
    """Records docker invocations and answers by subcommand."""

    def __init__(self, results=None):
        self.calls = []
        self.results = results or {}

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        returncode, out, err = self.results.get(argv[1], (0, "", ""))
        return subprocess.CompletedProcess(argv, returncode, out, err)

    def call_for(self, subcommand):
        return next(call for call in self.calls if call[1] == subcommand)


def test_build_env_list_sorted():
    env = {
        "NODE_ENV": "development",
        "ANTHROPIC_API_KEY": "placeholder",
        "SSH_AUTH_SOCK": "/run/ssh-agent.sock",
    }
    assert build_env_list(env) == [
        "ANTHROPIC_API_KEY=placeholder",
        "NODE_ENV=development",
        "SSH_AUTH_SOCK=/run/ssh-agent.sock",
    ]


def test_build_env_list_empty():
    assert build_env_list(None) == []
    assert build_env_list({}) == []


def test_build_port_bindings():
    result = build_port_bindings({3000: 3007, 8080: 3008})
    assert len(result) == 2
    assert result["3000/tcp"] == [{"host_ip": "127.0.0.1", "host_port": "3007"}]
    assert result["8080/tcp"] == [{"host_ip": "127.0.0.1", "host_port": "3008"}]


def test_build_port_bindings_empty():
    assert build_port_bindings(None) == {}


def test_build_binds():
    assert build_binds("/tmp/agent.sock", "/home/user/.config/gh") == [
        "/tmp/agent.sock:/run/ssh-agent.sock",
        "/home/user/.config/gh:/root/.config/gh:ro",
    ]


def test_build_binds_ssh_only():
    assert build_binds("/tmp/agent.sock", "") == ["/tmp/agent.sock:/run/ssh-agent.sock"]


def test_build_binds_empty():
    assert build_binds("", "") == []


def test_short_id():
    assert short_id("abc123def4567890") == "abc123def456"
    assert short_id("short") == "short"


def test_ping_failure_message():
    fake = FakeDocker({"version": (1, "", "Cannot connect to the Docker daemon")})
    client = ContainerClient(runner=fake)
    with pytest.raises(ContainerError, match="docker daemon not reachable") as info:
        client.ping()
    assert "Is Docker running? Try: docker info" in str(info.value)


def test_ping_success_queries_version():
    fake = FakeDocker({"version": (0, "27.5.1\n", "")})
    ContainerClient(runner=fake).ping()
    assert fake.calls[0][:2] == ["docker", "version"]


def test_create_workspace_builds_command():
    fake = FakeDocker({"create": (0, "abc123def4567890\n", "")})
    client = ContainerClient(runner=fake)
    container_id = client.create_workspace(
        CreateOptions(
            workspace_id="ws-1",
            image="ubuntu:24.04",
            ports={3000: 3007},
            ssh_auth_sock="/tmp/agent.sock",
            env_vars={"A": "1"},
        )
    )
    assert container_id == "abc123def4567890"
    create = fake.call_for("create")
    assert create[-3:] == ["ubuntu:24.04", "sleep", "infinity"]
    assert "sailo-ws-1" in create
    assert "managed-by=sailo" in create
    assert "127.0.0.1:3007:3000/tcp" in create
    assert "A=1" in create
    assert "/tmp/agent.sock:/run/ssh-agent.sock" in create
    assert fake.call_for("start") == ["docker", "start", "abc123def4567890"]
    assert not any(call[1] == "pull" for call in fake.calls)


def test_create_workspace_pulls_missing_image():
    fake = FakeDocker({"image": (1, "", "No such image"), "create": (0, "cid\n", "")})
    ContainerClient(runner=fake).create_workspace(CreateOptions(workspace_id="ws-2", image="node:22"))
    assert fake.call_for("pull") == ["docker", "pull", "node:22"]


def test_create_workspace_pull_failure():
    fake = FakeDocker({"image": (1, "", "missing"), "pull": (1, "", "denied")})
    with pytest.raises(ContainerError, match="ensure image node:22"):
        ContainerClient(runner=fake).create_workspace(CreateOptions(workspace_id="ws-2", image="node:22"))


def test_create_workspace_start_failure_removes_container():
    fake = FakeDocker({"create": (0, "cid\n", ""), "start": (1, "", "boom")})
    with pytest.raises(ContainerError, match="start container: boom"):
        ContainerClient(runner=fake).create_workspace(CreateOptions(workspace_id="ws-3", image="x"))
    assert fake.call_for("rm") == ["docker", "rm", "--force", "cid"]


def test_remove_container_removes_volumes():
    fake = FakeDocker()
    ContainerClient(runner=fake).remove_container("abc")
    assert fake.calls[0] == ["docker", "rm", "--force", "--volumes", "abc"]


def test_stop_container_error_uses_short_id():
    fake = FakeDocker({"stop": (1, "", "no such container")})
    with pytest.raises(ContainerError, match="stop container abc123def456: no such container"):
        ContainerClient(runner=fake).stop_container("abc123def4567890")


def test_exec_with_output_returns_trimmed_output():
    fake = FakeDocker({"exec": (0, "  hello\n", "")})
    output = ContainerClient(runner=fake).exec_with_output("cid", ["echo", "hello"])
    assert output == "hello"
    assert fake.calls[0] == ["docker", "exec", "cid", "echo", "hello"]


def test_exec_in_container_failure_includes_exit_code():
    fake = FakeDocker({"exec": (2, "bad thing\n", "")})
    with pytest.raises(ContainerError, match=r"command \[git status\] exited with code 2: bad thing"):
        ContainerClient(runner=fake).exec_in_container("cid", ["git", "status"])


def test_inspect_container_parses_state():
    fake = FakeDocker({"inspect": (0, '{"Running": true, "Status": "running"}\n', "")})
    state = ContainerClient(runner=fake).inspect_container("cid")
    assert state == ContainerState(running=True, status="running")


def test_inspect_container_failure():
    fake = FakeDocker({"inspect": (1, "", "No such container")})
    with pytest.raises(ContainerError, match="inspect container cid"):
        ContainerClient(runner=fake).inspect_container("cid")


def test_missing_docker_executable():
    def runner(argv, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", argv[0])

    with pytest.raises(ContainerError, match="docker daemon not reachable"):
        ContainerClient(runner=runner).ping()