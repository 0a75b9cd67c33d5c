# sailo

sailo builds isolated Docker workspaces for AI coding agents. Each workspace
gets its own container, a shallow git clone on a new branch, host ports that do
not clash with other workspaces, and SSH agent forwarding for git. It works
with any agent.

This package is a Python library. The workspace operations are functions and
classes that you call from your own code.

## Installation

```
pip install .
```

Containers are driven through the `docker` command, and the repository URL is
read with `git`. Both commands must be on your `PATH`, and the Docker daemon
must be running.

## What is in the package

| Module | Contents |
|---|---|
| `sailo.config` | `ProjectConfig`, `UserConfig`, `load_project_config`, `save_project_config`, `load_user_config`, `load_user_config_from`, `save_user_config`, `save_user_config_to`, `default_user_config`, `ConfigError` |
| `sailo.detect` | `Detector`, `DetectionResult`, `parse_compose_port`, `port_summary` |
| `sailo.ports` | `Allocator`, `parse_port_range`, `is_port_available`, `find_used_ports`, `PortError` |
| `sailo.container` | `ContainerClient`, `CreateOptions`, `ContainerState`, `ContainerError` |
| `sailo.gitops` | `GitManager` (clone, create_branch, diff, commit_all, push), `get_remote_url`, `GitError` |
| `sailo.store` | `Store`, a SQLite record of workspaces, with `StoreError` and `WorkspaceNotFoundError` |
| `sailo.state` | `State`, `Workspace`, `can_transition`, `InvalidTransitionError` |
| `sailo.manager` | `WorkspaceManager`, `CreateRequest`, `WorkspaceError` |
| `sailo.creds` | `filter_env`, `ssh_agent_socket`, `gh_config_dir`, `CredentialError` |
| `sailo.ids` | `generate_id` (`ws-` followed by 8 hex digits), `slugify` |
| `sailo.cli_init` | `run_init`, which writes a `.sailo.yaml` for a project |

## Detecting a project

```python
from sailo.detect import Detector, port_summary

result = Detector().detect(".")
print(result.language, result.base_image, port_summary(result.ports))
```

The detector looks for a `Dockerfile`, a compose file, `.devcontainer/devcontainer.json`,
and a language marker such as `package.json` or `go.mod`. It collects ports from
`EXPOSE` lines, compose `ports`, `package.json` scripts and `.env`.

`run_init` writes the result to `.sailo.yaml` and prints a summary. It will not
overwrite an existing file unless `force` is true:

```python
import sys
from sailo.cli_init import run_init

run_init(sys.stdout, ".", force=False)
```

## Creating and managing workspaces

```python
from pathlib import Path

from sailo.config import load_user_config
from sailo.container import ContainerClient
from sailo.detect import Detector
from sailo.gitops import GitManager
from sailo.manager import CreateRequest, WorkspaceManager
from sailo.ports import Allocator, parse_port_range
from sailo.store import Store

user_cfg = load_user_config()
low, high = parse_port_range(user_cfg.defaults.port_range)

with Store(Path.home() / ".sailo" / "workspaces.db") as store, ContainerClient() as docker:
    manager = WorkspaceManager(
        store=store,
        container=docker,
        ports=Allocator(low, high, store.used_host_ports),
        git=GitManager(docker),
        detector=Detector(),
        user_config=user_cfg,
    )
    ws = manager.create(CreateRequest("add dark mode", from_branch="main"))
    print(ws.id, ws.branch, ws.ports)

    docker.exec_interactive(ws.container_id, ["bash"])
    manager.stop(ws.id)
    manager.start(ws.id)
    manager.remove(ws.id)
```

`create` runs from the directory given as `project_dir`, which defaults to the
current directory. It reads that project's git remote and clones the
`from_branch` into `/workspace`. It then checks out `sailo/<id>/<slug>` and runs
the project's `setup` commands. A failing setup command is logged and creation
continues. If a step before that fails, the container and the record are
removed again.

A workspace moves only along these transitions:
creating → running/failed; running → stopped/shipping/failed/removed;
stopped → running/removed; shipping → archived/failed; archived → removed;
failed → removed. `WorkspaceManager.list` leaves out removed workspaces. It
leaves out archived ones too, unless `include_archived` is true.

## Configuration files

Project configuration, `.sailo.yaml`:

```yaml
version: 1
image: node:22-slim
ports:
  3000: auto
env:
  NODE_ENV: development
setup:
  - npm install
test: npm test
```

User configuration, `~/.sailo/config.yaml`. Any field that is missing takes the
default shown here:

```yaml
defaults:
  from: main
  cleanup_after: 24h
  port_range: 3001-3999
env_passthrough:
  - ANTHROPIC_API_KEY
  - OPENAI_API_KEY
  - GITHUB_TOKEN
git:
  credentials: ssh-agent
  auto_push: true
```

Only the environment variables named in `env_passthrough` are passed into
containers. SSH keys are never copied. They are forwarded through
`SSH_AUTH_SOCK`. The `gh` CLI configuration is mounted read-only.

## What the package does not do

- There is no command-line program. No `sailo` command is installed. To work
  with workspaces, call the library as shown above.
- There are no helpers to show or set configuration values by key. Edit the
  YAML files directly, or load, change and save a `UserConfig` with
  `load_user_config` and `save_user_config`.
- Shipping a workspace as a pull request, streaming its logs and opening
  previews are not provided.