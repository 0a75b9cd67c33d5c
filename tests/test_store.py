import time

import pytest

from sailo.state import State, Workspace
from sailo.store import Store, WorkspaceNotFoundError


@pytest.fixture
def store(tmp_path):
    db = Store(tmp_path / "sailo" / "workspaces.db")
    yield db
    db.close()


def test_new_store_creates_database(tmp_path):
    db_path = tmp_path / "sailo" / "workspaces.db"
    with Store(db_path):
        assert db_path.is_file()


def test_save_and_get(store):
    ws = Workspace(
        id="ws-abc123",
        task="add dark mode",
        state=State.RUNNING,
        branch="sailo/ws-abc123/add-dark-mode",
        container_id="container-xyz",
        ports={3000: 3007, 8080: 3008},
        from_branch="main",
    )
    store.save(ws)

    got = store.get("ws-abc123")
    assert got.id == ws.id
    assert got.task == ws.task
    assert got.state == State.RUNNING
    assert got.branch == ws.branch
    assert got.container_id == ws.container_id
    assert got.ports == {3000: 3007, 8080: 3008}
    assert got.from_branch == "main"
    assert got.created_at != ""
    assert got.updated_at != ""


def test_save_and_get_empty_ports(store):
    store.save(Workspace(id="ws-empty", task="test empty ports", state=State.CREATING, ports={}))
    assert store.get("ws-empty").ports == {}


def test_save_and_get_none_ports(store):
    store.save(Workspace(id="ws-nil", task="test nil ports", state=State.CREATING, ports=None))
    assert store.get("ws-nil").ports == {}


def test_get_not_found(store):
    with pytest.raises(WorkspaceNotFoundError, match="not found"):
        store.get("ws-nonexistent")


def test_list(store):
    for ws_id, state in [
        ("ws-1", State.RUNNING),
        ("ws-2", State.STOPPED),
        ("ws-3", State.ARCHIVED),
        ("ws-4", State.REMOVED),
    ]:
        store.save(Workspace(id=ws_id, task=f"task {ws_id}", state=state))

    assert sorted(ws.id for ws in store.list(False)) == ["ws-1", "ws-2"]
    assert sorted(ws.id for ws in store.list(True)) == ["ws-1", "ws-2", "ws-3"]


def test_list_empty(store):
    assert store.list(False) == []


def test_delete(store):
    store.save(Workspace(id="ws-del", task="to delete", state=State.RUNNING))
    store.delete("ws-del")
    with pytest.raises(WorkspaceNotFoundError, match="not found"):
        store.get("ws-del")


def test_delete_not_found(store):
    with pytest.raises(WorkspaceNotFoundError, match="not found"):
        store.delete("ws-ghost")


def test_save_updates_timestamp(store):
    ws = Workspace(id="ws-ts", task="timestamp test", state=State.CREATING)
    store.save(ws)
    first = store.get("ws-ts")

    time.sleep(1.1)

    ws.state = State.RUNNING
    store.save(ws)
    second = store.get("ws-ts")

    assert first.created_at == second.created_at
    assert first.updated_at != second.updated_at
    assert second.state == State.RUNNING


def test_reopen_keeps_data(tmp_path):
    db_path = tmp_path / "workspaces.db"
    with Store(db_path) as first:
        first.save(Workspace(id="ws-migrate", task="persist", state=State.RUNNING))
    with Store(db_path) as second:
        assert second.get("ws-migrate").task == "persist"


def test_used_host_ports_excludes_removed(store):
    store.save(Workspace(id="ws-a", task="a", state=State.RUNNING, ports={3000: 3007, 8080: 3008}))
    store.save(Workspace(id="ws-b", task="b", state=State.ARCHIVED, ports={5000: 3009}))
    store.save(Workspace(id="ws-c", task="c", state=State.REMOVED, ports={5000: 3010}))
    assert sorted(store.used_host_ports()) == [3007, 3008, 3009]


def test_used_host_ports_empty(store):
    assert store.used_host_ports() == []