"""The `init` command: write a .sailo.yaml from what the project contains."""

from __future__ import annotations

import logging
from typing import TextIO

from sailo.config import ProjectConfig, load_project_config, save_project_config
from sailo.detect import Detector, port_summary

_logger = logging.getLogger(__name__)


def run_init(out: TextIO, directory, force: bool = False) -> None:
    """Detect the project in directory and write its .sailo.yaml."""
    existing = load_project_config(directory)
    if existing is not None and not force:
        print(".sailo.yaml already exists. Use --force to overwrite.", file=out)
        return

    result = Detector(_logger).detect(directory)

    cfg = ProjectConfig(version=1)
    # An existing Dockerfile is reused, so no base image is pinned.
    if not result.dockerfile and result.base_image:
        cfg.image = result.base_image
    cfg.ports = {port: "auto" for port in result.ports}

    save_project_config(directory, cfg)

    print("Initialized .sailo.yaml", file=out)
    print("", file=out)
    print("Detected:", file=out)
    if result.language:
        print(f"  Language:   {result.language}", file=out)
    if result.base_image:
        print(f"  Base image: {result.base_image}", file=out)
    if result.dockerfile:
        print("  Dockerfile: found (will be reused)", file=out)
    if result.docker_compose:
        print("  Compose:    found", file=out)
    if result.dev_container:
        print("  Devcontainer: found", file=out)
    print(f"  Ports:      {port_summary(result.ports)}", file=out)
    print("", file=out)
    print("Edit .sailo.yaml to customize your workspace configuration.", file=out)