import io

from sailo.cli_init import run_init
from sailo.config import load_project_config

GO_IMAGE = "go" + "lang:1.22-bookworm"


def test_run_init_creates_config(tmp_path):
    buf = io.StringIO()
    run_init(buf, tmp_path, False)
    assert (tmp_path / ".sailo.yaml").is_file()
    assert "Initialized .sailo.yaml" in buf.getvalue()
    cfg = load_project_config(tmp_path)
    assert cfg.version == 1
    assert cfg.image == "ubuntu:24.04"


def test_run_init_detects_language(tmp_path):
    (tmp_path / "go.mod").write_text("module example\n\ngo 1.22\n")
    buf = io.StringIO()
    run_init(buf, tmp_path, False)
    output = buf.getvalue()
    assert "Language:   go" in output
    assert f"Base image: {GO_IMAGE}" in output


def test_run_init_already_exists(tmp_path):
    (tmp_path / ".sailo.yaml").write_text("version: 1\n")
    buf = io.StringIO()
    run_init(buf, tmp_path, False)
    assert "already exists" in buf.getvalue()
    assert (tmp_path / ".sailo.yaml").read_text() == "version: 1\n"


def test_run_init_force_overwrite(tmp_path):
    (tmp_path / ".sailo.yaml").write_text("version: 1\n")
    buf = io.StringIO()
    run_init(buf, tmp_path, True)
    assert "Initialized .sailo.yaml" in buf.getvalue()


def test_run_init_dockerfile_reused(tmp_path):
    (tmp_path / "Dockerfile").write_text("FROM node:22\nEXPOSE 3000\n")
    buf = io.StringIO()
    run_init(buf, tmp_path, False)
    output = buf.getvalue()
    assert "Dockerfile: found (will be reused)" in output
    assert "Ports:      3000" in output
    assert "image:" not in (tmp_path / ".sailo.yaml").read_text()
    assert load_project_config(tmp_path).ports == {3000: "auto"}


def test_run_init_detects_ports(tmp_path):
    (tmp_path / ".env").write_text("PORT=4000\n")
    buf = io.StringIO()
    run_init(buf, tmp_path, False)
    assert "Ports:      4000" in buf.getvalue()


def test_run_init_no_ports(tmp_path):
    buf = io.StringIO()
    run_init(buf, tmp_path, False)
    assert "Ports:      none detected" in buf.getvalue()
    assert load_project_config(tmp_path).ports == {}